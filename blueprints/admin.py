"""Owner console routes — edit the card, add sections, read the token ledger."""

from __future__ import annotations

from typing import Any

from flask import Blueprint, jsonify, request

from card_store import CardStoreDB, CardValidationError, new_custom_section_id
from credit_store import CreditStoreDB
from helpers import json_body, limit_arg, owner_required
from models import NEW_SECTION_TITLE

bp = Blueprint("admin", __name__)


def _card_payload(card) -> dict:
    data = card.to_dict()
    data["sections"] = card.resolved_sections()
    return data


@bp.route("/api/admin/card")
@owner_required
def api_admin_card(card_id: str) -> Any:
    return jsonify({"card": _card_payload(CardStoreDB.get(card_id))})


@bp.route("/api/admin/card", methods=["PUT"])
@owner_required
def api_admin_card_save(card_id: str) -> tuple[Any, int] | Any:
    try:
        card = CardStoreDB.update(card_id, json_body())
    except CardValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"success": True, "card": _card_payload(card)})


@bp.route("/api/admin/card/sections", methods=["POST"])
@owner_required
def api_admin_add_section(card_id: str) -> tuple[Any, int] | Any:
    """Append an empty custom section, expanded by default."""
    card = CardStoreDB.get(card_id)
    title = str(json_body().get("title") or NEW_SECTION_TITLE).strip() or NEW_SECTION_TITLE
    section_id = new_custom_section_id()
    while any(c["id"] == section_id for c in card.custom_sections):
        section_id += "_1"

    section_config = dict(card.section_config)
    section_config[section_id] = {"title": title, "isDefaultOpen": True}
    order = [s["id"] for s in card.resolved_sections()] + [section_id]
    card = CardStoreDB.update(card_id, {
        "custom_sections": card.custom_sections + [{"id": section_id, "title": title, "items": []}],
        "section_config": section_config,
        "section_order": order,
    })
    return jsonify({"success": True, "section_id": section_id, "card": _card_payload(card)}), 201


@bp.route("/api/admin/credits")
@owner_required
def api_admin_credits(card_id: str) -> tuple[Any, int] | Any:
    kind = request.args.get("kind", "all")
    if kind not in ("all", "usage", "income"):
        return jsonify({"error": "kind must be all, usage or income"}), 400
    store = CreditStoreDB(card_id)
    return jsonify({
        "balance": store.balance(),
        "transactions": store.transaction_history(limit=limit_arg(default_limit=100), kind=kind),
        "usage": store.usage_summary(),
    })
