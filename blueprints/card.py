"""Public card routes — the profile page data and its guestbook."""

from __future__ import annotations

from flask import Blueprint, jsonify

from card_store import CardStoreDB, public_view
from extensions import limiter
from guestbook_store import GuestbookStoreDB, GuestbookValidationError
from helpers import json_body, limit_arg

bp = Blueprint("card", __name__)


def _card_or_404(card_id: str):
    card = CardStoreDB.get(card_id)
    if card is None:
        return None, (jsonify({"error": "Card not found"}), 404)
    return card, None


@bp.route("/api/cards/<card_id>")
def api_card(card_id):
    card, error = _card_or_404(card_id)
    if error:
        return error
    data = public_view(card)
    data["guestbook_count"] = GuestbookStoreDB(card.id).count()
    return jsonify({"card": data})


@bp.route("/api/cards/<card_id>/guestbook")
def api_guestbook_list(card_id):
    card, error = _card_or_404(card_id)
    if error:
        return error
    entries = GuestbookStoreDB(card.id).entries(limit=limit_arg(default_limit=100))
    return jsonify({"entries": [e.to_dict() for e in entries]})


@bp.route("/api/cards/<card_id>/guestbook", methods=["POST"])
@limiter.limit("10 per hour")
def api_guestbook_add(card_id):
    card, error = _card_or_404(card_id)
    if error:
        return error
    data = json_body()
    try:
        entry = GuestbookStoreDB(card.id).add(
            data.get("name", ""), str(data.get("password") or ""), data.get("content", ""),
        )
    except GuestbookValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"success": True, "entry": entry.to_dict()}), 201


@bp.route("/api/cards/<card_id>/guestbook/<int:entry_id>", methods=["DELETE"])
@limiter.limit("20 per hour")
def api_guestbook_delete(card_id, entry_id):
    data = json_body()
    deleted = GuestbookStoreDB(card_id).delete(entry_id, str(data.get("password") or ""))
    if deleted is None:
        return jsonify({"error": "Entry not found"}), 404
    if not deleted:
        return jsonify({"error": "Wrong password"}), 403
    return jsonify({"success": True})
