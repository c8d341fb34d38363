"""
Test fixtures for the business card service.

Provides app, client, owner_client, master_client and db fixtures with
file-based SQLite. The Gemini call is patched per test through mock_llm.
"""

from __future__ import annotations

import sys
from pathlib import Path
from unittest.mock import patch

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

OWNER_EMAIL = "owner@example.com"
OWNER_PASSWORD = "OwnerPass1"
ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "AdminPass1"

SAMPLE_CARD = {
    "name": "Jane Doe",
    "role": "Product Designer",
    "intro": "I design calm software.",
    "owner_email": OWNER_EMAIL,
    "enable_ai": True,
    "ownerMbti": "infj",
    "tmi_data": "Drinks too much coffee.",
    "features": {"quiz": True, "synergy": True, "translation": True},
    "links": [{"type": "email", "value": "jane@example.com"}],
    "history": [{"date": "2020", "title": "Studio Nine", "desc": "Lead designer"}],
    "projects": [{"title": "Atlas", "link": "https://example.com/atlas", "desc": "Map app"}],
    "credits": 10,
}


@pytest.fixture(autouse=True)
def reset_circuit_breaker():
    """Each test starts with a closed circuit."""
    from ai_resilience import get_circuit_breaker
    get_circuit_breaker().reset()
    yield
    get_circuit_breaker().reset()


@pytest.fixture
def mock_llm():
    """Patch the raw Gemini call; set return_value or side_effect per test."""
    with patch("ai_resilience._do_call") as mock_call:
        mock_call.return_value = "Hello, I'm Jane's assistant."
        yield mock_call


@pytest.fixture
def app(tmp_path):
    """Create app with file-based SQLite and two seeded cards."""
    from app import create_app

    db_file = str(tmp_path / "test.db")
    app = create_app({
        "TESTING": True,
        "DATABASE": db_file,
        "SECRET_KEY": "test-secret-key",
        "RATELIMIT_ENABLED": False,
        "GEMINI_API_KEY": "test-key",
        "AI_MAX_ATTEMPTS": 1,
        "QUIZ_QUESTION_COUNT": 5,
        "SUPER_ADMIN_EMAIL": ADMIN_EMAIL,
        "DEFAULT_CARD_CREDITS": 1000,
        "LOG_LEVEL": "WARNING",
    })

    with app.app_context():
        from werkzeug.security import generate_password_hash
        from card_store import CardStoreDB
        from database import get_db, init_db, run_migrations

        init_db()
        run_migrations()

        db = get_db()
        for email, password in ((OWNER_EMAIL, OWNER_PASSWORD), (ADMIN_EMAIL, ADMIN_PASSWORD)):
            db.execute(
                "INSERT INTO accounts (email, name, password_hash, created_at) VALUES (?, ?, ?, ?)",
                (email, email.split("@")[0], generate_password_hash(password), "2026-01-01T00:00:00"),
            )
        db.commit()

        CardStoreDB.create("sample", SAMPLE_CARD)
        CardStoreDB.create("plain", {"name": "Plain Card", "owner_email": "other@example.com", "credits": 5})

    yield app


@pytest.fixture
def client(app):
    """Unauthenticated test client."""
    return app.test_client()


def _login(app, email, password):
    client = app.test_client()
    resp = client.post("/login", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.get_json()
    return client


@pytest.fixture
def owner_client(app):
    """Test client logged in as the owner of the 'sample' card."""
    with _login(app, OWNER_EMAIL, OWNER_PASSWORD) as client:
        yield client


@pytest.fixture
def master_client(app):
    """Test client logged in as the super admin."""
    with _login(app, ADMIN_EMAIL, ADMIN_PASSWORD) as client:
        yield client


@pytest.fixture
def db(app):
    """Direct database access for store tests."""
    with app.app_context():
        from database import get_db
        yield get_db()


@pytest.fixture
def active_event(app):
    """An active keyword event paying exactly 10 tokens for 'gold'."""
    with app.app_context():
        from event_store import EventConfigStore
        from models import EventConfig
        EventConfigStore.save(EventConfig(
            is_active=True, keyword="gold", prize_msg="You won {amount} tokens!",
            min_token=10, max_token=10,
        ))
    return app
