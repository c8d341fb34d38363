"""
Audit logging — records who changed balances, events and accounts.

Events are written to both the audit_log table and structured logging.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime

from flask import has_request_context, request

from database import get_db

logger = logging.getLogger(__name__)


def log_event(action: str, actor: str = "", detail: str = "") -> None:
    """Insert an audit log entry and emit a structured log line."""
    ip = (request.remote_addr or "") if has_request_context() else ""
    ua = request.headers.get("User-Agent", "") if has_request_context() else ""
    now = datetime.now().isoformat()

    try:
        db = get_db()
        db.execute(
            "INSERT INTO audit_log (actor, action, detail, ip_address, user_agent, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (actor or "", action, detail, ip, ua, now),
        )
        db.commit()
    except sqlite3.Error:
        logger.exception("audit write failed for %s", action)

    logger.info("audit: %s actor=%s detail=%s ip=%s", action, actor or "-", detail, ip)


def recent_events(limit: int = 50) -> list[dict]:
    rows = get_db().execute(
        "SELECT actor, action, detail, ip_address, created_at FROM audit_log "
        "ORDER BY id DESC LIMIT ?",
        (limit,),
    ).fetchall()
    return [dict(r) for r in rows]
