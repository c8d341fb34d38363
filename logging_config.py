"""
Structured logging configuration.

- LOG_FORMAT=json emits one JSON object per record (production default)
- LOG_FORMAT=text emits a readable line tagged with the request id
- Every record written during a request carries that request's id, taken
  from the X-Request-ID header when the caller sends one
- Token movements pass ``extra={"card_id": ...}`` so ledger lines can be
  filtered per card
"""

from __future__ import annotations

import json
import logging
import time
import uuid

from flask import Flask, g, has_request_context, request

TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s (%(request_id)s): %(message)s"

# Probes hit these every few seconds; keep them out of the access log.
QUIET_PATHS = ("/health", "/live", "/ready")

NOISY_LOGGERS = ("werkzeug", "urllib3", "grpc", "google.auth")


class JSONFormatter(logging.Formatter):
    """Render a record as a single JSON line."""

    OPTIONAL_FIELDS = ("card_id",)

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "request_id": getattr(record, "request_id", "-"),
            "msg": record.getMessage(),
        }
        for name in self.OPTIONAL_FIELDS:
            value = getattr(record, name, None)
            if value:
                payload[name] = value
        if record.exc_info and record.exc_info[0]:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


class RequestContextFilter(logging.Filter):
    """Stamp records with the id of the request being served, or '-'."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = g.get("request_id", "-") if has_request_context() else "-"
        return True


def _make_handler(log_format: str) -> logging.Handler:
    handler = logging.StreamHandler()
    handler.addFilter(RequestContextFilter())
    if log_format == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT, datefmt="%H:%M:%S"))
    return handler


def init_logging(app: Flask) -> None:
    """Install the root handler and the per-request id/access-log hooks."""
    level_name = str(app.config.get("LOG_LEVEL", "INFO")).upper()

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(_make_handler(app.config.get("LOG_FORMAT", "text")))
    root.setLevel(getattr(logging, level_name, logging.INFO))

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    @app.before_request
    def _attach_request_id():
        incoming = request.headers.get("X-Request-ID", "")[:32]
        g.request_id = incoming or uuid.uuid4().hex[:12]
        g.request_start = time.perf_counter()

    @app.after_request
    def _log_request(response):
        response.headers["X-Request-ID"] = g.get("request_id", "-")
        if request.path in QUIET_PATHS:
            return response
        elapsed = (time.perf_counter() - g.get("request_start", time.perf_counter())) * 1000
        app.logger.info("%s %s -> %d in %.0fms", request.method, request.full_path.rstrip("?"),
                        response.status_code, elapsed)
        return response
