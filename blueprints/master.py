"""Super-admin console — card setup, token grants, AI plan, keyword event and claims."""

from __future__ import annotations

import logging
from typing import Any

from flask import Blueprint, jsonify, request
from flask_login import current_user

from audit import log_event, recent_events
from card_store import CardStoreDB, CardValidationError
from credit_store import CreditStoreDB, InsufficientBalance, RecordNotFound
from event_store import ClaimNotPending, ClaimStoreDB, EventConfigStore
from helpers import json_body, limit_arg, super_admin_required
from models import CLAIM_APPROVED, CLAIM_PENDING, CLAIM_REJECTED, EventConfig

logger = logging.getLogger(__name__)

bp = Blueprint("master", __name__)

CLAIM_STATUSES = (CLAIM_PENDING, CLAIM_APPROVED, CLAIM_REJECTED)


def _summary(card) -> dict:
    return {
        "id": card.id,
        "name": card.name,
        "owner_email": card.owner_email,
        "credits": card.credits,
        "enable_ai": card.enable_ai,
        "created_at": card.created_at,
    }


# ── Cards ──────────────────────────────────────────────────


@bp.route("/api/master/cards")
@super_admin_required
def api_master_cards() -> Any:
    return jsonify({"cards": [_summary(c) for c in CardStoreDB.list_all()]})


@bp.route("/api/master/cards", methods=["POST"])
@super_admin_required
def api_master_create_card() -> tuple[Any, int]:
    data = json_body()
    try:
        card = CardStoreDB.create(str(data.get("id") or ""), data)
    except CardValidationError as e:
        return jsonify({"error": str(e)}), 400
    log_event("card_created", current_user.email, f"{card.id} owner={card.owner_email}")
    return jsonify({"success": True, "card": _summary(card)}), 201


@bp.route("/api/master/cards/<card_id>/credits", methods=["POST"])
@super_admin_required
def api_master_adjust_credits(card_id: str) -> tuple[Any, int] | Any:
    data = json_body()
    amount = data.get("amount")
    if not isinstance(amount, int) or isinstance(amount, bool):
        return jsonify({"error": "amount must be an integer"}), 400
    if amount == 0:
        return jsonify({"error": "amount must be non-zero"}), 400
    reason = str(data.get("reason") or "").strip() or ("Admin grant" if amount > 0 else "Admin adjustment")

    try:
        result = CreditStoreDB(card_id).adjust(amount, reason)
    except RecordNotFound:
        return jsonify({"error": "Card not found"}), 404
    except InsufficientBalance as e:
        return jsonify({"error": "Balance cannot go below zero", "balance": e.balance}), 409
    log_event("credits_adjusted", current_user.email, f"{card_id} {amount:+d} ({reason})")
    return jsonify(result)


@bp.route("/api/master/cards/<card_id>/ai-plan", methods=["POST"])
@super_admin_required
def api_master_ai_plan(card_id: str) -> tuple[Any, int] | Any:
    enabled = json_body().get("enable_ai")
    if not isinstance(enabled, bool):
        return jsonify({"error": "enable_ai must be true or false"}), 400
    try:
        card = CardStoreDB.set_ai_plan(card_id, enabled)
    except CardValidationError:
        return jsonify({"error": "Card not found"}), 404
    log_event("ai_plan_changed", current_user.email, f"{card_id} enable_ai={enabled}")
    return jsonify({"success": True, "card": _summary(card)})


# ── Keyword event ──────────────────────────────────────────


@bp.route("/api/master/event")
@super_admin_required
def api_master_event() -> Any:
    return jsonify(EventConfigStore.get().to_dict())


@bp.route("/api/master/event", methods=["PUT"])
@super_admin_required
def api_master_event_save() -> tuple[Any, int] | Any:
    try:
        config = EventConfig.from_dict(json_body())
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    EventConfigStore.save(config)
    log_event(
        "event_config_saved", current_user.email,
        f"active={config.is_active} keyword={config.keyword!r} range={config.min_token}-{config.max_token}",
    )
    return jsonify({"success": True, "event": config.to_dict()})


@bp.route("/api/master/claims")
@super_admin_required
def api_master_claims() -> tuple[Any, int] | Any:
    status = request.args.get("status") or CLAIM_PENDING
    if status not in CLAIM_STATUSES:
        return jsonify({"error": "status must be pending, approved or rejected"}), 400
    claims = ClaimStoreDB.list_all(status, limit=limit_arg(default_limit=100))
    return jsonify({"claims": [c.to_dict() for c in claims]})


@bp.route("/api/master/claims/<int:claim_id>/approve", methods=["POST"])
@super_admin_required
def api_master_claim_approve(claim_id: int) -> tuple[Any, int] | Any:
    if ClaimStoreDB.get(claim_id) is None:
        return jsonify({"error": "Claim not found"}), 404
    try:
        claim, result = ClaimStoreDB.approve(claim_id)
    except RecordNotFound:
        return jsonify({"error": "The card for this claim no longer exists"}), 409
    except ClaimNotPending as e:
        return jsonify({"error": str(e)}), 409
    log_event("claim_approved", current_user.email, f"claim {claim.id} {claim.user_id} +{claim.amount}")
    return jsonify({"success": True, "claim": claim.to_dict(), "balance_after": result["balance_after"]})


@bp.route("/api/master/claims/<int:claim_id>/reject", methods=["POST"])
@super_admin_required
def api_master_claim_reject(claim_id: int) -> tuple[Any, int] | Any:
    try:
        claim = ClaimStoreDB.reject(claim_id)
    except RecordNotFound:
        return jsonify({"error": "Claim not found"}), 404
    except ClaimNotPending as e:
        return jsonify({"error": str(e)}), 409
    log_event("claim_rejected", current_user.email, f"claim {claim.id} {claim.user_id}")
    return jsonify({"success": True, "claim": claim.to_dict()})


@bp.route("/api/master/audit")
@super_admin_required
def api_master_audit() -> Any:
    return jsonify({"events": recent_events(limit=limit_arg(default_limit=50, max_limit=200))})
