"""Tests for the AI gateway and the resilience layer under it."""

from __future__ import annotations

import json

import pytest

from ai_gateway import (
    UNAVAILABLE_REPLY,
    UNKNOWN_ANSWER,
    UPSTREAM_ERROR_REPLY,
    AIGateway,
    MalformedModelOutput,
    build_prompt,
    grade_quiz,
    parse_structured_reply,
    quiz_rank,
)
from ai_resilience import (
    CircuitBreaker,
    CircuitOpenError,
    get_circuit_breaker,
    resilient_llm_call,
)

CONTEXT = {"name": "Jane Doe", "role": "Designer", "ownerMbti": "INFJ", "intro": "Hi"}


# ── Prompts ─────────────────────────────────────────────────


class TestBuildPrompt:
    def test_chat_persona_grounded_in_facts(self):
        prompt = build_prompt("chat", CONTEXT, message="What do you do?")
        assert "Jane Doe (Designer)" in prompt
        assert UNKNOWN_ANSWER in prompt
        assert '"intro": "Hi"' in prompt
        assert prompt.endswith("[REQUEST]: What do you do?")

    def test_quiz_uses_question_count(self):
        prompt = build_prompt("quiz", CONTEXT, quiz_count=7)
        assert "7 multiple-choice questions" in prompt
        assert '"answer": 0' in prompt

    def test_synergy_includes_visitor_and_owner_mbti(self):
        prompt = build_prompt("synergy", CONTEXT, visitor_data={"name": "Sam", "mbti": "ENTP"})
        assert "ENTP" in prompt
        assert "The owner's MBTI type is INFJ." in prompt

    def test_translate_names_language(self):
        prompt = build_prompt("translate", {"intro": "Hola"}, target_lang="English")
        assert "into English" in prompt
        assert "Hola" in prompt


# ── Gateway ─────────────────────────────────────────────────


class TestGatewayReply:
    def test_missing_key_is_unavailable(self, mock_llm):
        gateway = AIGateway(api_key="")
        assert gateway.available is False
        assert gateway.reply("chat", CONTEXT, message="hi") == UNAVAILABLE_REPLY
        mock_llm.assert_not_called()

    def test_chat_returns_model_text(self, mock_llm):
        reply = AIGateway(api_key="k", max_attempts=1).reply("chat", CONTEXT, message="hi")
        assert reply == "Hello, I'm Jane's assistant."
        model, prompt, api_key, json_mode = mock_llm.call_args.args
        assert model == "gemini-2.5-flash"
        assert api_key == "k"
        assert json_mode is False

    def test_structured_modes_request_json(self, mock_llm):
        mock_llm.return_value = '{"score": 80, "title": "t", "reason": "r"}'
        AIGateway(api_key="k", max_attempts=1).reply("synergy", CONTEXT, visitor_data={"name": "Sam"})
        assert mock_llm.call_args.args[3] is True

    def test_unknown_mode_treated_as_chat(self, mock_llm):
        AIGateway(api_key="k", max_attempts=1).reply("poetry", CONTEXT, message="hi")
        assert mock_llm.call_args.args[3] is False

    def test_upstream_failure_becomes_error_reply(self, mock_llm):
        mock_llm.side_effect = ValueError("API key not valid")
        assert AIGateway(api_key="k", max_attempts=1).reply("chat", CONTEXT, message="hi") == UPSTREAM_ERROR_REPLY

    def test_empty_text_is_a_failure(self, mock_llm):
        mock_llm.return_value = ""
        assert AIGateway(api_key="k", max_attempts=1).reply("chat", CONTEXT, message="hi") == UPSTREAM_ERROR_REPLY

    def test_from_config(self):
        gateway = AIGateway.from_config({"GEMINI_API_KEY": "abc", "AI_MODEL": "m", "QUIZ_QUESTION_COUNT": 4})
        assert gateway.api_key == "abc"
        assert gateway.model == "m"
        assert gateway.quiz_count == 4


# ── Structured output ───────────────────────────────────────


class TestParseStructuredReply:
    QUIZ = {"questions": [{"q": "Favourite drink?", "options": ["Tea", "Coffee", "Milk"], "answer": 1}]}

    def test_quiz_with_code_fence(self):
        text = "```json\n" + json.dumps(self.QUIZ) + "\n```"
        assert parse_structured_reply("quiz", text) == self.QUIZ

    def test_quiz_bad_answer_index(self):
        bad = {"questions": [{"q": "?", "options": ["a", "b", "c"], "answer": 3}]}
        with pytest.raises(MalformedModelOutput):
            parse_structured_reply("quiz", json.dumps(bad))

    def test_quiz_without_questions(self):
        with pytest.raises(MalformedModelOutput):
            parse_structured_reply("quiz", '{"questions": []}')

    def test_not_json(self):
        with pytest.raises(MalformedModelOutput):
            parse_structured_reply("synergy", "I think you two would get along!")

    def test_error_reply_is_malformed(self):
        with pytest.raises(MalformedModelOutput):
            parse_structured_reply("quiz", UPSTREAM_ERROR_REPLY)

    def test_synergy_score_clamped(self):
        data = parse_structured_reply("synergy", '{"score": 140, "title": "Wow"}')
        assert data["score"] == 100
        assert data["reason"] == ""

    def test_synergy_requires_score(self):
        with pytest.raises(MalformedModelOutput):
            parse_structured_reply("synergy", '{"title": "Wow"}')

    def test_translate_keeps_object(self):
        assert parse_structured_reply("translate", '{"intro": "Hello"}') == {"intro": "Hello"}

    def test_translate_rejects_list(self):
        with pytest.raises(MalformedModelOutput):
            parse_structured_reply("translate", '["Hello"]')


class TestQuizGrading:
    QUESTIONS = [{"q": str(i), "options": ["a", "b", "c"], "answer": i % 3} for i in range(5)]

    def test_perfect_score(self):
        result = grade_quiz(self.QUESTIONS, [0, 1, 2, 0, 1])
        assert result == {"correct": 5, "total": 5, "score": 100, "rank": "Soulmate"}

    def test_partial_score(self):
        result = grade_quiz(self.QUESTIONS, [0, 1, 2, 0, 0])
        assert result["score"] == 80
        assert result["rank"] == "Certified best friend"

    def test_missing_answers_count_as_wrong(self):
        assert grade_quiz(self.QUESTIONS, [0])["correct"] == 1

    def test_empty_quiz(self):
        with pytest.raises(ValueError):
            grade_quiz([], [])

    @pytest.mark.parametrize("score,rank", [
        (100, "Soulmate"), (80, "Certified best friend"), (60, "Close friends"), (59, "Needs more effort"),
    ])
    def test_rank_thresholds(self, score, rank):
        assert quiz_rank(score) == rank


# ── Resilience ──────────────────────────────────────────────


class TestCircuitBreaker:
    def _tripped(self, now):
        cb = CircuitBreaker(clock=lambda: now[0])
        for _ in range(CircuitBreaker.FAILURE_THRESHOLD):
            cb.record_failure()
        return cb

    def test_opens_after_threshold(self):
        cb = self._tripped([0.0])
        assert cb.state == "open"
        assert cb.allow() is False

    def test_below_threshold_stays_closed(self):
        cb = CircuitBreaker()
        cb.record_failure()
        cb.record_failure()
        assert cb.allow() is True
        cb.record_success()
        cb.record_failure()
        cb.record_failure()
        assert cb.state == "closed"

    def test_single_probe_after_cool_down(self):
        now = [0.0]
        cb = self._tripped(now)
        now[0] = CircuitBreaker.COOL_DOWN + 1
        assert cb.allow() is True
        assert cb.state == "half_open"
        assert cb.allow() is False

    def test_probe_success_closes(self):
        now = [0.0]
        cb = self._tripped(now)
        now[0] = CircuitBreaker.COOL_DOWN + 1
        cb.allow()
        cb.record_success()
        assert cb.state == "closed"

    def test_probe_failure_reopens(self):
        now = [0.0]
        cb = self._tripped(now)
        now[0] = CircuitBreaker.COOL_DOWN + 1
        cb.allow()
        cb.record_failure()
        assert cb.state == "open"
        assert cb.allow() is False


class TestResilientCall:
    def test_metadata(self, mock_llm):
        text, meta = resilient_llm_call("gemini-2.5-flash", "p", "k", max_attempts=1)
        assert text == "Hello, I'm Jane's assistant."
        assert meta["provider"] == "gemini"
        assert meta["attempts"] == 1

    def test_transient_error_retried(self, mock_llm):
        mock_llm.side_effect = [ConnectionError("reset"), "second time lucky"]
        text, meta = resilient_llm_call("m", "p", "k", max_attempts=2)
        assert text == "second time lucky"
        assert meta["attempts"] == 2

    def test_permanent_error_not_retried(self, mock_llm):
        mock_llm.side_effect = ValueError("invalid argument")
        with pytest.raises(ValueError):
            resilient_llm_call("m", "p", "k", max_attempts=3)
        assert mock_llm.call_count == 1

    def test_open_circuit_skips_upstream(self, mock_llm):
        mock_llm.side_effect = ValueError("invalid argument")
        for _ in range(CircuitBreaker.FAILURE_THRESHOLD):
            with pytest.raises(ValueError):
                resilient_llm_call("m", "p", "k", max_attempts=1)
        mock_llm.reset_mock()

        with pytest.raises(CircuitOpenError):
            resilient_llm_call("m", "p", "k", max_attempts=1)
        mock_llm.assert_not_called()
        assert get_circuit_breaker().state == "open"
