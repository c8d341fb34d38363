"""DB-backed card records: setup, owner edits, and the views built from them."""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime

from flask import current_app

from credit_store import TX_GRANT, apply_delta
from database import get_db, immediate_transaction
from models import (
    CUSTOM_PREFIX,
    BUILTIN_SECTIONS,
    Card,
    clean_colors,
    clean_custom_sections,
    clean_features,
    clean_history,
    clean_links,
    clean_projects,
    clean_section_config,
    clean_titled,
)

logger = logging.getLogger(__name__)

CARD_ID_RE = re.compile(r"^[a-z0-9][a-z0-9_-]{1,39}$")

# Plain text fields the owner console may overwrite.
TEXT_FIELDS = ("name", "role", "intro", "profile_img", "tmi_data")

# JSON columns and the cleaner that normalizes each.
JSON_FIELDS = {
    "colors": clean_colors,
    "features": clean_features,
    "section_config": clean_section_config,
    "links": clean_links,
    "history": clean_history,
    "projects": clean_projects,
    "custom_sections": clean_custom_sections,
    "certifications": clean_titled,
    "awards": clean_titled,
    "research": clean_titled,
}

PUBLIC_HIDDEN = ("owner_email", "credits")

AI_CONTEXT_FIELDS = (
    "name", "role", "intro", "tmi_data", "ownerMbti", "history", "projects",
    "custom_sections", "certifications", "awards", "research",
)


class CardValidationError(ValueError):
    """Raised when setup or an owner save carries unusable data."""


def normalize_section_order(order, custom_sections: list[dict]) -> list[str]:
    """Profile first, then known ids once each, in the given order."""
    known = set(BUILTIN_SECTIONS) | {c["id"] for c in custom_sections}
    result = ["profile"]
    if isinstance(order, list):
        for sec_id in order:
            if isinstance(sec_id, str) and sec_id in known and sec_id not in result:
                result.append(sec_id)
    # Newly added custom sections that the client forgot to place go last.
    for custom in custom_sections:
        if custom["id"] not in result and isinstance(order, list) and order:
            result.append(custom["id"])
    return result if len(result) > 1 else []


def public_view(card: Card) -> dict:
    data = card.to_dict()
    for key in PUBLIC_HIDDEN:
        data.pop(key, None)
    data["sections"] = card.resolved_sections()
    return data


def ai_context(card: Card) -> dict:
    """The profile facts prompts are allowed to draw from."""
    data = card.to_dict()
    return {key: data[key] for key in AI_CONTEXT_FIELDS if data.get(key)}


class CardStoreDB:
    """Card lookups and writes."""

    @staticmethod
    def get(card_id: str) -> Card | None:
        row = get_db().execute("SELECT * FROM cards WHERE id = ?", (card_id,)).fetchone()
        return Card.from_row(row) if row else None

    @staticmethod
    def get_by_owner(email: str) -> Card | None:
        if not email:
            return None
        row = get_db().execute(
            "SELECT * FROM cards WHERE owner_email = ? ORDER BY created_at LIMIT 1",
            (email.strip().lower(),),
        ).fetchone()
        return Card.from_row(row) if row else None

    @staticmethod
    def list_all() -> list[Card]:
        rows = get_db().execute("SELECT * FROM cards ORDER BY created_at, id").fetchall()
        return [Card.from_row(r) for r in rows]

    @staticmethod
    def create(card_id: str, data: dict) -> Card:
        """Set up a new card with the starting credit allowance."""
        card_id = (card_id or "").strip().lower()
        if not CARD_ID_RE.match(card_id):
            raise CardValidationError(
                "Card id must be 2-40 characters of lowercase letters, digits, '-' or '_'"
            )
        name = str(data.get("name") or "").strip()
        if not name:
            raise CardValidationError("Name is required")

        credits = data.get("credits", current_app.config.get("DEFAULT_CARD_CREDITS", 1000))
        try:
            credits = int(credits)
        except (TypeError, ValueError):
            raise CardValidationError("credits must be an integer")
        if credits < 0:
            raise CardValidationError("credits must not be negative")

        custom = clean_custom_sections(data.get("custom_sections"))
        values = {
            "id": card_id,
            "owner_email": str(data.get("owner_email") or "").strip().lower(),
            "name": name,
            "role": str(data.get("role") or ""),
            "intro": str(data.get("intro") or ""),
            "profile_img": str(data.get("profile_img") or current_app.config.get("DEFAULT_PROFILE_IMG", "")),
            "enable_ai": 1 if data.get("enable_ai") is True else 0,
            "owner_mbti": str(data.get("ownerMbti") or "").strip().upper(),
            "tmi_data": str(data.get("tmi_data") or "").strip(),
            "section_order": json.dumps(normalize_section_order(data.get("section_order"), custom)),
            "created_at": datetime.now().isoformat(),
        }
        for key, cleaner in JSON_FIELDS.items():
            values[key] = json.dumps(cleaner(data.get(key)))

        columns = ", ".join(values)
        placeholders = ", ".join("?" for _ in values)
        with immediate_transaction() as db:
            if db.execute("SELECT 1 FROM cards WHERE id = ?", (card_id,)).fetchone():
                raise CardValidationError(f"Card '{card_id}' already exists")
            db.execute(f"INSERT INTO cards ({columns}) VALUES ({placeholders})", tuple(values.values()))
            if credits:
                apply_delta(db, card_id, credits, TX_GRANT, "Initial credits")

        logger.info("card %s created for %s", card_id, values["owner_email"] or "<no owner>")
        return CardStoreDB.get(card_id)

    @staticmethod
    def update(card_id: str, data: dict) -> Card:
        """Owner save. Balance, ownership and the AI plan are not editable here."""
        card = CardStoreDB.get(card_id)
        if card is None:
            raise CardValidationError(f"Card '{card_id}' not found")

        values: dict[str, object] = {}
        for key in TEXT_FIELDS:
            if key in data:
                values[key] = str(data[key] or "")
        if "name" in values and not str(values["name"]).strip():
            raise CardValidationError("Name is required")
        if "ownerMbti" in data:
            values["owner_mbti"] = str(data["ownerMbti"] or "").strip().upper()

        cleaned = {key: cleaner(data[key]) for key, cleaner in JSON_FIELDS.items() if key in data}
        section_config = cleaned.get("section_config", card.section_config)
        custom = cleaned.get("custom_sections", card.custom_sections)
        # Titles edited in the section list are the source of truth for custom sections.
        for section in custom:
            title = section_config.get(section["id"], {}).get("title")
            if title:
                section["title"] = title
        if "custom_sections" in cleaned or "section_config" in cleaned:
            cleaned["custom_sections"] = custom
        for key, value in cleaned.items():
            values[key] = json.dumps(value)

        if "section_order" in data or "custom_sections" in cleaned:
            order = data.get("section_order", card.section_order)
            values["section_order"] = json.dumps(normalize_section_order(order, custom))

        if values:
            assignments = ", ".join(f"{key} = ?" for key in values)
            db = get_db()
            db.execute(f"UPDATE cards SET {assignments} WHERE id = ?", (*values.values(), card_id))
            db.commit()
        return CardStoreDB.get(card_id)

    @staticmethod
    def set_ai_plan(card_id: str, enabled: bool) -> Card:
        db = get_db()
        cur = db.execute("UPDATE cards SET enable_ai = ? WHERE id = ?", (1 if enabled else 0, card_id))
        db.commit()
        if cur.rowcount == 0:
            raise CardValidationError(f"Card '{card_id}' not found")
        return CardStoreDB.get(card_id)


def new_custom_section_id() -> str:
    return f"{CUSTOM_PREFIX}{int(datetime.now().timestamp() * 1000)}"


TRANSLATE_HIDDEN = ("id", "profile_img", "colors", "features", "section_order", "enable_ai")


def translatable_view(card: Card) -> dict:
    """Public card text to send for translation; layout data stays out."""
    data = public_view(card)
    for key in TRANSLATE_HIDDEN:
        data.pop(key, None)
    return data
