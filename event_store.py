"""
Keyword event — detection in chat and the claim approval workflow.

A claim is created ``pending`` when a chat message equals the configured
keyword and moves exactly once, to ``approved`` (crediting the card in the
same transaction) or to ``rejected``.
"""

from __future__ import annotations

import logging
import random
from datetime import datetime

from credit_store import TX_EVENT, RecordNotFound, apply_delta
from database import get_db, immediate_transaction
from models import (
    CLAIM_APPROVED,
    CLAIM_PENDING,
    CLAIM_REJECTED,
    Card,
    EventClaim,
    EventConfig,
)

logger = logging.getLogger(__name__)


class ClaimNotPending(Exception):
    """Raised when approving or rejecting a claim that was already decided."""

    def __init__(self, claim_id: int, status: str):
        super().__init__(f"claim {claim_id} is already {status}")
        self.claim_id = claim_id
        self.status = status


def normalize_keyword(text: str | None) -> str:
    return (text or "").strip().lower()


class EventConfigStore:
    """The single global event configuration row."""

    @staticmethod
    def get() -> EventConfig:
        row = get_db().execute("SELECT * FROM event_config WHERE id = 1").fetchone()
        return EventConfig.from_row(row)

    @staticmethod
    def save(config: EventConfig) -> EventConfig:
        db = get_db()
        db.execute(
            "INSERT INTO event_config (id, is_active, keyword, prize_msg, min_token, max_token, updated_at) "
            "VALUES (1, ?, ?, ?, ?, ?, ?) "
            "ON CONFLICT(id) DO UPDATE SET is_active = excluded.is_active, keyword = excluded.keyword, "
            "prize_msg = excluded.prize_msg, min_token = excluded.min_token, "
            "max_token = excluded.max_token, updated_at = excluded.updated_at",
            (
                1 if config.is_active else 0, config.keyword, config.prize_msg,
                config.min_token, config.max_token, datetime.now().isoformat(),
            ),
        )
        db.commit()
        return config


def detect_event(card: Card, message: str) -> tuple[EventClaim, EventConfig] | None:
    """Create a pending claim when ``message`` is the active keyword.

    Returns (claim, config) on a hit, None otherwise. Never raises: a broken
    detector must not block the chatbot.
    """
    try:
        config = EventConfigStore.get()
        if not config.is_active:
            return None
        keyword = normalize_keyword(config.keyword)
        if not keyword or normalize_keyword(message) != keyword:
            return None

        amount = random.randint(config.min_token, config.max_token)
        db = get_db()
        cur = db.execute(
            "INSERT INTO event_claims (user_id, user_name, keyword, amount, status, claimed_at) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (card.id, card.name, config.keyword, amount, CLAIM_PENDING, datetime.now().isoformat()),
        )
        db.commit()
        claim = ClaimStoreDB.get(cur.lastrowid)
    except Exception:
        logger.exception("event detection failed for card %s", card.id)
        return None

    logger.info("event keyword hit by %s, claim %s for %d tokens", card.id, claim.id, amount)
    return claim, config


class ClaimStoreDB:
    """Event claims and their pending -> approved | rejected transitions."""

    @staticmethod
    def get(claim_id: int) -> EventClaim | None:
        row = get_db().execute("SELECT * FROM event_claims WHERE id = ?", (claim_id,)).fetchone()
        return EventClaim.from_row(row) if row else None

    @staticmethod
    def list_all(status: str | None = None, limit: int = 100) -> list[EventClaim]:
        sql = "SELECT * FROM event_claims"
        params: list = []
        if status:
            sql += " WHERE status = ?"
            params.append(status)
        sql += " ORDER BY claimed_at DESC, id DESC LIMIT ?"
        params.append(limit)
        return [EventClaim.from_row(r) for r in get_db().execute(sql, params).fetchall()]

    @staticmethod
    def _pending_claim(db, claim_id: int) -> EventClaim:
        row = db.execute("SELECT * FROM event_claims WHERE id = ?", (claim_id,)).fetchone()
        if row is None:
            raise RecordNotFound(f"claim {claim_id} not found")
        claim = EventClaim.from_row(row)
        if claim.status != CLAIM_PENDING:
            raise ClaimNotPending(claim_id, claim.status)
        return claim

    @staticmethod
    def approve(claim_id: int) -> tuple[EventClaim, dict]:
        """Credit the reward and mark the claim approved as one unit."""
        with immediate_transaction() as db:
            claim = ClaimStoreDB._pending_claim(db, claim_id)
            result = apply_delta(db, claim.user_id, claim.amount, TX_EVENT, f"Event win ({claim.keyword})")
            db.execute(
                "UPDATE event_claims SET status = ?, approved_at = ? WHERE id = ?",
                (CLAIM_APPROVED, datetime.now().isoformat(), claim_id),
            )
        logger.info("claim %s approved, %d tokens to %s", claim_id, claim.amount, claim.user_id)
        return ClaimStoreDB.get(claim_id), result

    @staticmethod
    def reject(claim_id: int) -> EventClaim:
        with immediate_transaction() as db:
            ClaimStoreDB._pending_claim(db, claim_id)
            db.execute("UPDATE event_claims SET status = ? WHERE id = ?", (CLAIM_REJECTED, claim_id))
        logger.info("claim %s rejected", claim_id)
        return ClaimStoreDB.get(claim_id)
