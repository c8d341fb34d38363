"""Tests for auth.py — register, login, logout, lockout, app-level behaviour."""

from __future__ import annotations

from datetime import datetime, timedelta


class TestRegister:
    def test_register_success(self, client):
        resp = client.post("/register", json={"name": "Sam", "email": "Sam@Example.com", "password": "Securepass1"})
        assert resp.status_code == 201
        user = resp.get_json()["user"]
        assert user["email"] == "sam@example.com"
        assert user["card_id"] is None

    def test_register_owner_links_card(self, client):
        resp = client.post("/register", json={"email": "other@example.com", "password": "Securepass1"})
        assert resp.get_json()["user"]["card_id"] == "plain"

    def test_weak_password(self, client):
        resp = client.post("/register", json={"email": "weak@example.com", "password": "short1"})
        assert resp.status_code == 400
        assert "at least 8" in resp.get_json()["error"]
        resp = client.post("/register", json={"email": "weak@example.com", "password": "nodigitshere"})
        assert resp.status_code == 400

    def test_duplicate_email(self, client):
        resp = client.post("/register", json={"email": "owner@example.com", "password": "Securepass1"})
        assert resp.status_code == 409

    def test_invalid_email(self, client):
        assert client.post("/register", json={"email": "nope", "password": "Securepass1"}).status_code == 400


class TestLogin:
    def test_login_and_me(self, owner_client):
        me = owner_client.get("/api/me").get_json()["user"]
        assert me["email"] == "owner@example.com"
        assert me["card_id"] == "sample"
        assert me["is_super_admin"] is False

    def test_master_flag(self, master_client):
        assert master_client.get("/api/me").get_json()["user"]["is_super_admin"] is True

    def test_wrong_password(self, client):
        resp = client.post("/login", json={"email": "owner@example.com", "password": "wrong"})
        assert resp.status_code == 401

    def test_missing_fields(self, client):
        assert client.post("/login", json={}).status_code == 400

    def test_lockout_after_five_failures(self, client):
        for _ in range(5):
            client.post("/login", json={"email": "owner@example.com", "password": "wrong"})
        resp = client.post("/login", json={"email": "owner@example.com", "password": "OwnerPass1"})
        assert resp.status_code == 423

    def test_expired_lock_allows_login(self, app, client):
        with app.app_context():
            from database import get_db
            db = get_db()
            db.execute(
                "UPDATE accounts SET login_attempts = 5, locked_until = ? WHERE email = 'owner@example.com'",
                ((datetime.now() - timedelta(minutes=1)).isoformat(),),
            )
            db.commit()
        resp = client.post("/login", json={"email": "owner@example.com", "password": "OwnerPass1"})
        assert resp.status_code == 200

    def test_logout(self, owner_client):
        assert owner_client.post("/logout").status_code == 200
        assert owner_client.get("/api/me").status_code == 401


class TestAppBehaviour:
    def test_health(self, client):
        assert client.get("/health").get_json()["status"] == "ok"
        assert client.get("/ready").status_code == 200
        assert client.get("/live").status_code == 200

    def test_json_404(self, client):
        resp = client.get("/no/such/route")
        assert resp.status_code == 404
        assert "error" in resp.get_json()

    def test_json_405(self, client):
        resp = client.get("/api/chat")
        assert resp.status_code == 405
        assert "error" in resp.get_json()

    def test_security_headers(self, client):
        resp = client.get("/health")
        assert resp.headers["X-Content-Type-Options"] == "nosniff"
        assert resp.headers["X-Frame-Options"] == "SAMEORIGIN"
        assert "Content-Security-Policy" in resp.headers

    def test_request_id_echoed(self, client):
        resp = client.get("/health", headers={"X-Request-ID": "abc123"})
        assert resp.headers["X-Request-ID"] == "abc123"
