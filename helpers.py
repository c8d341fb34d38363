"""
Shared helpers used across blueprints.

Access decorators for the two consoles plus request-parsing utilities.
"""

from __future__ import annotations

from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import jsonify, request
from flask_login import current_user


def owner_required(f: Callable) -> Callable:
    """Require a logged-in card owner; passes ``card_id`` to the view."""
    @wraps(f)
    def decorated(*args: Any, **kwargs: Any) -> Any:
        if not current_user.is_authenticated:
            return jsonify({"error": "Authentication required"}), 401
        card_id = current_user.card_id
        if card_id is None:
            return jsonify({"error": "No card is registered to this account"}), 403
        return f(card_id, *args, **kwargs)
    return decorated


def super_admin_required(f: Callable) -> Callable:
    """Require the configured super-admin account."""
    @wraps(f)
    def decorated(*args: Any, **kwargs: Any) -> Any:
        if not current_user.is_authenticated:
            return jsonify({"error": "Authentication required"}), 401
        if not current_user.is_super_admin:
            return jsonify({"error": "Access denied"}), 403
        return f(*args, **kwargs)
    return decorated


def json_body() -> dict:
    """Request JSON as a dict; anything else becomes an empty dict."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def limit_arg(default_limit: int = 100, max_limit: int = 500) -> int:
    """Extract ?limit= from request.args, clamped to [1, max_limit]."""
    try:
        return min(max_limit, max(1, int(request.args.get("limit", default_limit))))
    except (ValueError, TypeError):
        return default_limit
