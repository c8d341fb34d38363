"""
AI Gateway — builds mode-specific prompts and proxies them to Gemini.

The gateway never raises on upstream trouble: callers always get a reply
string back, and an error-shaped string is a soft failure. Structured modes
(quiz, synergy, translate) ask for JSON, which callers decode with
parse_structured_reply().
"""

from __future__ import annotations

import json
import logging

from ai_resilience import resilient_llm_call

logger = logging.getLogger(__name__)

MODES = ("chat", "quiz", "synergy", "translate")
STRUCTURED_MODES = ("quiz", "synergy", "translate")

UNAVAILABLE_REPLY = "The AI service is unavailable right now."
UPSTREAM_ERROR_REPLY = "The AI assistant could not answer. Please try again in a moment."
LIMITED_REPLY = "The AI service is temporarily limited. (Limit Reached)"
RETRY_REPLY = "Something went wrong with the AI answer. Please try again."
UNKNOWN_ANSWER = "I'm sorry, I don't know about that. Could you ask me by e-mail instead?"

QUIZ_OPTION_COUNT = 3

PERSONA_PROMPT = """You are the AI assistant of {name}{role_note}, answering visitors of {name}'s digital business card.

RULES:
- Speak on {name}'s behalf in the first person, politely, reflecting their tone and personality.
- Use ONLY the profile facts below. If something is not covered, reply exactly:
  "{unknown}"
- Keep answers short (at most 3-4 sentences) and never invent facts.

PROFILE FACTS:
{facts}"""

QUIZ_PROMPT = """You are the AI persona of {name}{role_note}. Stay courteous and witty, never like a party host.

TASK:
Write a "how well do you know {name}" quiz of {count} multiple-choice questions for a visitor.

STRICT RULES:
1. Every question must come ONLY from facts stated in the profile below. Do not imagine anything.
2. If the profile is too thin for {count} questions, write fewer rather than padding.
3. Each question has exactly {options} options; wrong options must be plausible.
4. "answer" is the 0-based index of the correct option (0 to {last_index}).
5. Use correct spelling and grammar in the profile's language.

OUTPUT: JSON only, no markdown:
{{"questions": [{{"q": "question", "options": ["a", "b", "c"], "answer": 0}}]}}

PROFILE FACTS:
{facts}"""

SYNERGY_PROMPT = """You are a career and personality analyst.
Compare the card owner {name} with the visitor and describe how well they would work and get along together.
{mbti_note}
OWNER: {owner}
VISITOR: {visitor}

OUTPUT: JSON only:
{{"score": <integer 0-100>, "title": "one-line verdict", "reason": "three positive, hopeful sentences"}}"""

TRANSLATE_PROMPT = """You are a professional translator.
Translate every string VALUE of the JSON object below into {language}.
Keep every key, the nesting and the array order exactly as they are; do not translate URLs, e-mail addresses or ids.
Return the translated JSON object only.

DATA:
{data}"""


class UpstreamAIFailure(Exception):
    """The provider call failed; the gateway turns this into an error reply."""


class MalformedModelOutput(ValueError):
    """A structured reply could not be decoded into the expected shape."""


def _facts(context: dict) -> str:
    return json.dumps(context or {}, ensure_ascii=False, indent=1)


def _role_note(context: dict) -> str:
    role = (context or {}).get("role")
    return f" ({role})" if role else ""


def build_prompt(
    mode: str,
    context: dict,
    message: str = "",
    target_lang: str = "",
    visitor_data: dict | None = None,
    quiz_count: int = 10,
) -> str:
    """Full prompt text (instructions followed by the request) for a mode."""
    context = context or {}
    name = context.get("name") or "the card owner"

    if mode == "quiz":
        system = QUIZ_PROMPT.format(
            name=name, role_note=_role_note(context), count=quiz_count,
            options=QUIZ_OPTION_COUNT, last_index=QUIZ_OPTION_COUNT - 1, facts=_facts(context),
        )
        request = "Check the profile facts and write the quiz."
    elif mode == "synergy":
        owner_mbti = context.get("ownerMbti")
        mbti_note = f"The owner's MBTI type is {owner_mbti}.\n" if owner_mbti else ""
        system = SYNERGY_PROMPT.format(
            name=name, mbti_note=mbti_note, owner=_facts(context),
            visitor=json.dumps(visitor_data or {}, ensure_ascii=False),
        )
        request = "Run the compatibility analysis."
    elif mode == "translate":
        system = TRANSLATE_PROMPT.format(language=target_lang or "English", data=_facts(context))
        request = "Translate."
    else:
        system = PERSONA_PROMPT.format(
            name=name, role_note=_role_note(context), unknown=UNKNOWN_ANSWER, facts=_facts(context),
        )
        request = message or ""

    return f"{system}\n\n[REQUEST]: {request}"


class AIGateway:
    """Proxy to the generative-language API for one configured model."""

    def __init__(self, api_key: str, model: str = "gemini-2.5-flash", max_attempts: int = 2,
                 quiz_count: int = 10):
        self.api_key = api_key
        self.model = model
        self.max_attempts = max_attempts
        self.quiz_count = quiz_count

    @classmethod
    def from_config(cls, config) -> AIGateway:
        return cls(
            api_key=config.get("GEMINI_API_KEY", ""),
            model=config.get("AI_MODEL", "gemini-2.5-flash"),
            max_attempts=config.get("AI_MAX_ATTEMPTS", 2),
            quiz_count=config.get("QUIZ_QUESTION_COUNT", 10),
        )

    @property
    def available(self) -> bool:
        return bool(self.api_key)

    def _generate(self, prompt: str, json_mode: bool) -> str:
        try:
            text, meta = resilient_llm_call(
                self.model, prompt, self.api_key, json_mode=json_mode, max_attempts=self.max_attempts,
            )
        except Exception as e:
            raise UpstreamAIFailure(str(e)) from e
        logger.info("gemini %s replied in %sms (%s attempts)", meta["model"], meta["latency_ms"], meta["attempts"])
        if not text:
            raise UpstreamAIFailure("empty reply")
        return text

    def reply(
        self,
        mode: str,
        context: dict,
        message: str = "",
        target_lang: str = "",
        visitor_data: dict | None = None,
    ) -> str:
        """Return the model's raw text, or an error-shaped reply string."""
        if not self.available:
            return UNAVAILABLE_REPLY
        if mode not in MODES:
            mode = "chat"
        prompt = build_prompt(
            mode, context, message=message, target_lang=target_lang,
            visitor_data=visitor_data, quiz_count=self.quiz_count,
        )
        try:
            return self._generate(prompt, json_mode=mode in STRUCTURED_MODES)
        except UpstreamAIFailure as e:
            logger.error("AI upstream failure in %s mode: %s", mode, e)
            return UPSTREAM_ERROR_REPLY


# ── Structured output ───────────────────────────────────────

def _strip_fences(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    return text.strip()


def _check_quiz(data) -> dict:
    questions = data.get("questions") if isinstance(data, dict) else None
    if not isinstance(questions, list) or not questions:
        raise MalformedModelOutput("quiz reply has no questions")
    for i, q in enumerate(questions):
        if not isinstance(q, dict) or not isinstance(q.get("q"), str):
            raise MalformedModelOutput(f"question {i} has no text")
        options = q.get("options")
        if not isinstance(options, list) or len(options) < 2:
            raise MalformedModelOutput(f"question {i} has too few options")
        answer = q.get("answer")
        if isinstance(answer, bool) or not isinstance(answer, int) or not 0 <= answer < len(options):
            raise MalformedModelOutput(f"question {i} has an invalid answer index")
    return data


def _check_synergy(data) -> dict:
    if not isinstance(data, dict):
        raise MalformedModelOutput("synergy reply is not an object")
    score = data.get("score")
    if isinstance(score, bool) or not isinstance(score, (int, float)):
        raise MalformedModelOutput("synergy reply has no numeric score")
    data["score"] = max(0, min(100, int(round(score))))
    data["title"] = str(data.get("title") or "")
    data["reason"] = str(data.get("reason") or "")
    return data


def parse_structured_reply(mode: str, text: str) -> dict:
    """Decode a quiz/synergy/translate reply; raises MalformedModelOutput."""
    if text in (UNAVAILABLE_REPLY, UPSTREAM_ERROR_REPLY):
        raise MalformedModelOutput(text)
    try:
        data = json.loads(_strip_fences(text or ""))
    except ValueError as e:
        raise MalformedModelOutput(f"reply is not JSON: {e}") from e

    if mode == "quiz":
        return _check_quiz(data)
    if mode == "synergy":
        return _check_synergy(data)
    if not isinstance(data, dict):
        raise MalformedModelOutput("translation reply is not an object")
    return data


# ── Quiz grading ────────────────────────────────────────────

QUIZ_RANKS = (
    (100, "Soulmate"),
    (80, "Certified best friend"),
    (60, "Close friends"),
)
QUIZ_FALLBACK_RANK = "Needs more effort"


def quiz_rank(score: int) -> str:
    for threshold, rank in QUIZ_RANKS:
        if score >= threshold:
            return rank
    return QUIZ_FALLBACK_RANK


def grade_quiz(questions: list[dict], answers: list[int]) -> dict:
    """Score a finished quiz on a 0-100 scale with its friendship rank."""
    if not questions:
        raise ValueError("No questions to grade")
    correct = sum(
        1 for i, q in enumerate(questions)
        if i < len(answers) and isinstance(q, dict) and q.get("answer") == answers[i]
    )
    score = round(correct * 100 / len(questions))
    return {"correct": correct, "total": len(questions), "score": score, "rank": quiz_rank(score)}
