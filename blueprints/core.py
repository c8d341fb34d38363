"""Core routes — liveness and readiness probes."""

from __future__ import annotations

import logging
import sqlite3
import time

from flask import Blueprint, jsonify

from database import get_db

logger = logging.getLogger(__name__)

bp = Blueprint("core", __name__)

STARTED_AT = time.monotonic()


@bp.route("/health")
def health():
    """Process is up; reports uptime only."""
    return jsonify({"status": "ok", "uptime_seconds": int(time.monotonic() - STARTED_AT)})


@bp.route("/live")
def live():
    return jsonify({"status": "alive"})


@bp.route("/ready")
def ready():
    """Ready once the card database answers a query."""
    try:
        cards = get_db().execute("SELECT COUNT(*) FROM cards").fetchone()[0]
    except sqlite3.Error as exc:
        logger.error("readiness probe failed: %s", exc, exc_info=True)
        return jsonify({"status": "not_ready"}), 503
    return jsonify({"status": "ready", "cards": cards})
