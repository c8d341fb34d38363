"""AI Resilience Layer — bounded retry and a circuit breaker around Gemini.

resilient_llm_call() is the only place the service talks to the
generative-language API. Transient failures are retried a bounded number of
times; repeated failures open the circuit so a dead upstream fails fast
instead of holding chat requests for the full retry schedule.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable

from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)

PROVIDER = "gemini"


# ── Circuit Breaker ─────────────────────────────────────────

class CircuitBreaker:
    """Trips after consecutive upstream failures, lets one probe through after a cool-down.

    closed: calls flow. open: calls are refused until COOL_DOWN elapses.
    half_open: one probe is in flight; success closes, failure re-opens.
    """

    FAILURE_THRESHOLD = 3
    COOL_DOWN = 60.0  # seconds

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._failures = 0
        self._opened_at: float | None = None
        self._probing = False

    @property
    def state(self) -> str:
        if self._opened_at is None:
            return "closed"
        return "half_open" if self._probing else "open"

    def allow(self) -> bool:
        """Whether a call may go upstream now."""
        with self._lock:
            if self._opened_at is None:
                return True
            if self._probing:
                return False
            if self._clock() - self._opened_at >= self.COOL_DOWN:
                self._probing = True
                return True
            return False

    def record_success(self) -> None:
        with self._lock:
            self._failures = 0
            self._opened_at = None
            self._probing = False

    def record_failure(self) -> None:
        with self._lock:
            self._failures += 1
            if self._probing or self._failures >= self.FAILURE_THRESHOLD:
                if self._opened_at is None:
                    logger.warning("%s circuit opened after %d failures", PROVIDER, self._failures)
                self._opened_at = self._clock()
                self._probing = False

    def reset(self) -> None:
        with self._lock:
            self._failures = 0
            self._opened_at = None
            self._probing = False


_breaker = CircuitBreaker()


# ── Transient error detection ───────────────────────────────

# Substrings of google.api_core / HTTP error text worth another attempt.
_TRANSIENT_MARKERS = (
    "429",
    "500",
    "502",
    "503",
    "504",
    "resource exhausted",
    "rate limit",
    "overloaded",
    "unavailable",
    "deadline exceeded",
    "timed out",
    "timeout",
)


def _is_transient(exc: BaseException) -> bool:
    if isinstance(exc, (ConnectionError, TimeoutError)):
        return True
    text = str(exc).lower()
    return any(marker in text for marker in _TRANSIENT_MARKERS)


class TransientLLMError(Exception):
    """An upstream failure that a later attempt may not repeat."""


class CircuitOpenError(RuntimeError):
    """Raised without calling upstream while the breaker is open."""


# ── Upstream call ───────────────────────────────────────────

def _do_call(model: str, prompt: str, api_key: str, json_mode: bool) -> str:
    """One raw Gemini request."""
    import google.generativeai as genai

    genai.configure(api_key=api_key)
    generation_config = {"response_mime_type": "application/json"} if json_mode else None
    response = genai.GenerativeModel(model).generate_content(prompt, generation_config=generation_config)
    return response.text


def _attempt(model: str, prompt: str, api_key: str, json_mode: bool) -> str:
    try:
        return _do_call(model, prompt, api_key, json_mode)
    except Exception as exc:
        if not _is_transient(exc):
            raise
        logger.warning("transient %s error: %s", PROVIDER, exc)
        raise TransientLLMError(str(exc)) from exc


def resilient_llm_call(
    model: str,
    prompt: str,
    api_key: str,
    json_mode: bool = False,
    max_attempts: int = 2,
) -> tuple[str, dict]:
    """Call Gemini with bounded retry and circuit breaking.

    Returns (text, meta) where meta holds provider, model, latency_ms and
    attempts. Raises CircuitOpenError while the breaker is open,
    TransientLLMError once the attempts are used up, and any other client
    error unchanged on the first occurrence.
    """
    if not _breaker.allow():
        raise CircuitOpenError(f"{PROVIDER} circuit is open")

    retrying = Retrying(
        retry=retry_if_exception_type(TransientLLMError),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        stop=stop_after_attempt(max(1, max_attempts)),
        reraise=True,
    )
    started = time.perf_counter()
    try:
        text = retrying(_attempt, model, prompt, api_key, json_mode)
    except Exception:
        _breaker.record_failure()
        raise
    _breaker.record_success()

    return text, {
        "provider": PROVIDER,
        "model": model,
        "latency_ms": int((time.perf_counter() - started) * 1000),
        "attempts": retrying.statistics.get("attempt_number", 1),
    }


def get_circuit_breaker() -> CircuitBreaker:
    """The process-wide breaker guarding the Gemini upstream."""
    return _breaker
