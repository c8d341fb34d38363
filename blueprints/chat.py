"""AI proxy route — chatbot, quiz, synergy and translation through one endpoint."""

from __future__ import annotations

import logging

from flask import Blueprint, current_app, jsonify

from ai_gateway import (
    LIMITED_REPLY,
    MODES,
    RETRY_REPLY,
    STRUCTURED_MODES,
    UNAVAILABLE_REPLY,
    MalformedModelOutput,
    grade_quiz,
    parse_structured_reply,
)
from card_store import CardStoreDB, ai_context, translatable_view
from credit_store import FEATURE_COSTS, CreditStoreDB, InsufficientBalance, RecordNotFound, feature_reason
from event_store import detect_event
from extensions import GatewayManager, limiter
from helpers import json_body

logger = logging.getLogger(__name__)

bp = Blueprint("chat", __name__)

NOT_FOUND_REPLY = "This card could not be found."
DISABLED_REPLY = "This feature is not enabled on this card."
DEFAULT_PRIZE_MSG = (
    "Congratulations! You found the secret keyword. "
    "{amount} tokens will be added once an administrator confirms your win."
)

# Card feature flag guarding each mode.
MODE_FEATURES = {
    "chat": "chat",
    "quiz": "quiz",
    "synergy": "synergy",
    "translate": "translation",
}


def _chat_rate_limit() -> str:
    return current_app.config.get("CHAT_RATE_LIMIT", "30 per minute")


def render_prize_message(template: str, amount: int, keyword: str) -> str:
    """Fill {amount} and {keyword} in the admin's prize message."""
    message = template or DEFAULT_PRIZE_MSG
    return message.replace("{amount}", str(amount)).replace("{keyword}", keyword)


def _bad_request(reply: str, code: str):
    return jsonify({"reply": reply, "error": code}), 400


@bp.route("/api/chat", methods=["POST"])
@limiter.limit(_chat_rate_limit)
def api_chat():
    data = json_body()
    mode = data.get("mode") or "chat"
    if mode not in MODES:
        mode = "chat"
    message = str(data.get("message") or "")
    target_lang = str(data.get("targetLang") or "").strip()
    context = data.get("context") if isinstance(data.get("context"), dict) else {}
    visitor_data = data.get("visitorData") if isinstance(data.get("visitorData"), dict) else None
    username = str(data.get("username") or "").strip()

    gateway = GatewayManager.get_gateway()
    if not gateway.available:
        logger.error("GEMINI_API_KEY is not configured; refusing %s request", mode)
        return jsonify({"reply": UNAVAILABLE_REPLY, "error": "unavailable"}), 503

    if mode == "chat" and not message.strip():
        return _bad_request("Please type a message.", "empty_message")
    if mode == "synergy" and not (visitor_data and visitor_data.get("name") and visitor_data.get("mbti")):
        return _bad_request("Please enter a name and an MBTI type.", "missing_visitor_data")
    if mode == "translate" and not target_lang:
        return _bad_request("Please choose a language.", "missing_target_lang")

    if username:
        card = CardStoreDB.get(username)
        if card is None:
            return jsonify({"reply": NOT_FOUND_REPLY, "error": "card_not_found"}), 404
        if not card.feature_enabled(MODE_FEATURES[mode]):
            return jsonify({"reply": DISABLED_REPLY, "error": "feature_disabled"}), 403
        if not context:
            context = translatable_view(card) if mode == "translate" else ai_context(card)

        if mode == "chat":
            hit = detect_event(card, message)
            if hit is not None:
                claim, config = hit
                return jsonify({
                    "reply": render_prize_message(config.prize_msg, claim.amount, config.keyword),
                    "event": claim.to_dict(),
                })

        try:
            CreditStoreDB(card.id).debit(FEATURE_COSTS[mode], feature_reason(mode, target_lang))
        except InsufficientBalance:
            return jsonify({"reply": LIMITED_REPLY, "error": "insufficient_balance"}), 402
        except RecordNotFound:
            return jsonify({"reply": NOT_FOUND_REPLY, "error": "card_not_found"}), 404

    reply = gateway.reply(
        mode, context, message=message, target_lang=target_lang, visitor_data=visitor_data,
    )
    body: dict = {"reply": reply}
    if mode in STRUCTURED_MODES:
        try:
            body["data"] = parse_structured_reply(mode, reply)
        except MalformedModelOutput as e:
            logger.warning("unusable %s reply: %s", mode, e)
            body["error"] = "malformed_output"
            body["message"] = RETRY_REPLY
    return jsonify(body)


@bp.route("/api/quiz/score", methods=["POST"])
def api_quiz_score():
    data = json_body()
    questions = data.get("questions")
    answers = data.get("answers")
    if not isinstance(questions, list) or not isinstance(answers, list):
        return jsonify({"error": "questions and answers must be lists"}), 400
    try:
        return jsonify(grade_quiz(questions, answers))
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
