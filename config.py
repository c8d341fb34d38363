"""
Application configuration — environment-aware settings.

Every setting reads an environment variable of the same name (``.env`` is
loaded first); .env.example lists them all. FLASK_ENV picks the class.
"""

from __future__ import annotations

import os
import warnings
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

BASE_DIR = Path(__file__).parent

INSECURE_SECRET = "dev-key-change-in-production"


def _env_int(name: str, default: int) -> int:
    return int(os.environ.get(name, str(default)))


class BaseConfig:
    SECRET_KEY = os.environ.get("SECRET_KEY", INSECURE_SECRET)
    DATABASE = os.environ.get("DATABASE_URL") or str(BASE_DIR / "cards.db")
    JSON_SORT_KEYS = False
    MAX_CONTENT_LENGTH = 1 * 1024 * 1024  # card JSON plus guestbook posts

    # Owner and master console sessions
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    PERMANENT_SESSION_LIFETIME = 7 * 24 * 3600
    SUPER_ADMIN_EMAIL = os.environ.get("SUPER_ADMIN_EMAIL", "").strip().lower()

    # Gemini
    GEMINI_API_KEY = os.environ.get("GEMINI_API_KEY", "")
    AI_MODEL = os.environ.get("AI_MODEL", "gemini-2.5-flash")
    AI_MAX_ATTEMPTS = _env_int("AI_MAX_ATTEMPTS", 2)
    QUIZ_QUESTION_COUNT = _env_int("QUIZ_QUESTION_COUNT", 10)

    # Card setup defaults
    DEFAULT_CARD_CREDITS = _env_int("DEFAULT_CARD_CREDITS", 1000)
    DEFAULT_PROFILE_IMG = os.environ.get("DEFAULT_PROFILE_IMG", "https://placehold.co/150")

    LOG_FORMAT = os.environ.get("LOG_FORMAT", "text")
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Flask-Limiter; memory:// unless REDIS_URL is set
    RATELIMIT_STORAGE_URI = os.environ.get("REDIS_URL") or "memory://"
    CHAT_RATE_LIMIT = os.environ.get("CHAT_RATE_LIMIT", "30 per minute")


class DevelopmentConfig(BaseConfig):
    DEBUG = True


class ProductionConfig(BaseConfig):
    DEBUG = False
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "json")
    SESSION_COOKIE_SECURE = True

    @classmethod
    def validate(cls):
        """Refuse to boot with an insecure secret; warn about missing integrations."""
        if cls.SECRET_KEY in (INSECURE_SECRET, ""):
            raise RuntimeError("Production configuration error: SECRET_KEY must be set to a secure value.")
        if not cls.SUPER_ADMIN_EMAIL:
            warnings.warn("SUPER_ADMIN_EMAIL is not set; the master console is unreachable.")
        if not cls.GEMINI_API_KEY:
            warnings.warn("GEMINI_API_KEY is not set; AI features will answer 'service unavailable'.")


class TestingConfig(BaseConfig):
    TESTING = True
    RATELIMIT_ENABLED = False


config_by_name = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
}
