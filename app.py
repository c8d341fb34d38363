"""
Digital Business Card — Flask Web Application

Public card pages with a guestbook, an owner console, a super-admin console,
and a token-metered AI proxy (chatbot, friend quiz, synergy, translation).
"""

from __future__ import annotations

import logging
import os
from typing import Any

from flask import Flask, Response, jsonify
from werkzeug.exceptions import HTTPException

import database
from auth import auth_bp, login_manager
from blueprints import register_blueprints
from extensions import limiter
from logging_config import init_logging

logger = logging.getLogger(__name__)

API_CSP = "default-src 'none'; frame-ancestors 'self'"


def _load_config(app: Flask, test_config: dict[str, Any] | None) -> None:
    if test_config is not None:
        app.config.update(test_config)
        return
    from config import config_by_name
    cfg = config_by_name.get(os.environ.get("FLASK_ENV", "development"), config_by_name["development"])
    if hasattr(cfg, "validate"):
        cfg.validate()
    app.config.from_object(cfg)


def _register_error_handlers(app: Flask) -> None:
    """Every error leaves the API as {"error": ...}."""

    @app.errorhandler(HTTPException)
    def http_error(e: HTTPException) -> tuple[Response, int]:
        return jsonify({"error": e.description or e.name}), e.code or 500

    @app.errorhandler(429)
    def rate_limited(e: HTTPException) -> tuple[Response, int]:
        return jsonify({"error": "Too many requests. Please slow down.", "limit": str(e.description)}), 429

    @app.errorhandler(500)
    def server_error(e: Exception) -> tuple[Response, int]:
        logger.error("unhandled error: %s", e, exc_info=True)
        return jsonify({"error": "Internal server error"}), 500


def create_app(test_config: dict[str, Any] | None = None) -> Flask:
    app = Flask(__name__)
    _load_config(app, test_config)
    app.secret_key = app.config.get("SECRET_KEY") or os.environ.get("SECRET_KEY", "dev-key-change-in-production")
    app.json.sort_keys = app.config.get("JSON_SORT_KEYS", False)

    init_logging(app)
    database.init_app(app)

    limiter.init_app(app)
    if app.config.get("TESTING"):
        limiter.enabled = False

    login_manager.init_app(app)
    app.register_blueprint(auth_bp)
    register_blueprints(app)
    _register_error_handlers(app)

    @app.after_request
    def set_security_headers(response: Response) -> Response:
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "SAMEORIGIN"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Content-Security-Policy"] = API_CSP
        if not app.debug:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response

    return app


if __name__ == "__main__":
    create_app().run(debug=True, port=5001)
