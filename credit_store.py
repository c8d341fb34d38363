"""Token Economy — per-card balances and the append-only ledger.

Every balance change runs inside one immediate transaction that reads the
current balance, writes the new one and appends exactly one ledger row, so
concurrent debits against the same card can never spend past zero.
"""

from __future__ import annotations

import logging
from datetime import datetime

from database import get_db, immediate_transaction
from models import LedgerEntry

logger = logging.getLogger(__name__)


FEATURE_COSTS = {
    "chat": 2,
    "quiz": 3,
    "synergy": 3,
    "translate": 1,
}

FEATURE_REASONS = {
    "chat": "AI chatbot",
    "quiz": "Friend quiz",
    "synergy": "Synergy analysis",
    "translate": "Translation ({lang})",
}

TX_USAGE = "usage"
TX_GRANT = "grant"
TX_EVENT = "event"


class InsufficientBalance(Exception):
    """Raised when a debit would take a card below zero."""

    def __init__(self, card_id: str, required: int, balance: int):
        super().__init__(f"card {card_id} has {balance} credits, {required} required")
        self.card_id = card_id
        self.required = required
        self.balance = balance


class RecordNotFound(Exception):
    """Raised when a card (or claim) referenced by a transaction is missing."""


def feature_reason(feature: str, target_lang: str = "") -> str:
    template = FEATURE_REASONS.get(feature, feature)
    return template.format(lang=target_lang or "?")


def _read_balance(db, card_id: str) -> int:
    row = db.execute("SELECT credits FROM cards WHERE id = ?", (card_id,)).fetchone()
    if row is None:
        raise RecordNotFound(f"card {card_id} not found")
    return row["credits"]


def apply_delta(db, card_id: str, delta: int, tx_type: str, reason: str) -> dict:
    """Write one balance change and its ledger row on an open transaction.

    Callers own the transaction; this lets claim approval flip the claim in
    the same unit of work.
    """
    current = _read_balance(db, card_id)
    new_balance = current + delta
    if new_balance < 0:
        raise InsufficientBalance(card_id, -delta, current)

    db.execute("UPDATE cards SET credits = ? WHERE id = ?", (new_balance, card_id))
    cur = db.execute(
        "INSERT INTO credit_logs (card_id, type, amount, reason, balance_after, date) "
        "VALUES (?, ?, ?, ?, ?, ?)",
        (card_id, tx_type, delta, reason, new_balance, datetime.now().isoformat()),
    )
    return {"success": True, "balance_after": new_balance, "tx_id": cur.lastrowid}


class CreditStoreDB:
    """DB-backed credit ledger for one card."""

    def __init__(self, card_id: str):
        self.card_id = card_id

    def balance(self) -> int:
        """Current credit balance."""
        return _read_balance(get_db(), self.card_id)

    def debit(self, amount: int, reason: str) -> dict:
        """Deduct credits. Returns {success, balance_after, tx_id}.

        Raises InsufficientBalance (nothing written) or RecordNotFound.
        """
        if amount < 0:
            raise ValueError("Debit amount must not be negative")
        if amount == 0:
            return {"success": True, "balance_after": self.balance(), "tx_id": None}
        try:
            with immediate_transaction() as db:
                result = apply_delta(db, self.card_id, -amount, TX_USAGE, reason)
        except InsufficientBalance as e:
            logger.info("debit refused: %s", e, extra={"card_id": self.card_id})
            raise
        logger.info(
            "debit %d for %r, balance now %d", amount, reason, result["balance_after"],
            extra={"card_id": self.card_id},
        )
        return result

    def credit(self, amount: int, reason: str, tx_type: str = TX_GRANT) -> dict:
        """Add credits. Returns {success, balance_after, tx_id}."""
        if amount <= 0:
            raise ValueError("Credit amount must be positive")
        with immediate_transaction() as db:
            result = apply_delta(db, self.card_id, amount, tx_type, reason)
        logger.info(
            "credit %d (%s) for %r, balance now %d", amount, tx_type, reason, result["balance_after"],
            extra={"card_id": self.card_id},
        )
        return result

    def adjust(self, amount: int, reason: str) -> dict:
        """Signed admin adjustment: positive grants, negative claws back."""
        if amount == 0:
            raise ValueError("Adjustment must be non-zero")
        if amount > 0:
            return self.credit(amount, reason, TX_GRANT)
        with immediate_transaction() as db:
            result = apply_delta(db, self.card_id, amount, TX_GRANT, reason)
        logger.info("adjust %d for %r", amount, reason, extra={"card_id": self.card_id})
        return result

    def transaction_history(self, limit: int = 100, kind: str = "all") -> list[dict]:
        """Recent ledger rows, newest first. kind: all | usage | income."""
        sql = "SELECT * FROM credit_logs WHERE card_id = ?"
        if kind == "usage":
            sql += " AND type = 'usage'"
        elif kind == "income":
            sql += " AND amount > 0"
        sql += " ORDER BY date DESC, id DESC LIMIT ?"
        rows = get_db().execute(sql, (self.card_id, limit)).fetchall()
        return [LedgerEntry.from_row(r).to_dict() for r in rows]

    def usage_summary(self) -> dict[str, dict]:
        """Spending grouped by reason: {reason: {count, total}}."""
        rows = get_db().execute(
            "SELECT reason, COUNT(*) AS count, -SUM(amount) AS total FROM credit_logs "
            "WHERE card_id = ? AND type = 'usage' GROUP BY reason ORDER BY total DESC",
            (self.card_id,),
        ).fetchall()
        return {(r["reason"] or "Other"): {"count": r["count"], "total": r["total"]} for r in rows}
