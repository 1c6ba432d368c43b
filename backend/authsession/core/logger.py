"""JSON log lines on stdout, correlated by request id.

Anything passed through ``extra=`` ends up as a top-level key of the JSON
object, so session events can be filtered on ``event``, ``session_id`` and
``user_id``. Values of keys that look like secrets are masked.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from flask import Flask, Response, g, has_request_context, request

REQUEST_ID_HEADER = "X-Request-ID"
CORRELATION_HEADERS = (REQUEST_ID_HEADER, "X-Correlation-ID")

_RESERVED = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
    "message",
    "asctime",
    "request_id",
}
_SECRET_MARKERS = ("token", "password", "secret")
REDACTED = "[redacted]"


def _is_secret(key: str) -> bool:
    lowered = key.lower()
    return any(marker in lowered for marker in _SECRET_MARKERS)


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "time": datetime.fromtimestamp(record.created, timezone.utc).isoformat(
                timespec="milliseconds"
            ),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", None),
        }
        for key, value in vars(record).items():
            if key in _RESERVED or key.startswith("_"):
                continue
            payload[key] = REDACTED if _is_secret(key) else value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class RequestIdFilter(logging.Filter):
    """Stamp ``request_id`` on every record (``None`` outside a request)."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = ensure_request_id() if has_request_context() else None
        return True


def ensure_request_id() -> str:
    """
    Return the id correlating this request's logs and error bodies.

    The first call per request adopts an incoming correlation header or mints
    a uuid4; later calls return the same value. Outside a request every call
    returns a fresh uuid4.
    """
    if not has_request_context():
        return str(uuid4())
    request_id = g.get("request_id")
    if request_id is None:
        incoming = (request.headers.get(h) for h in CORRELATION_HEADERS)
        request_id = next((v for v in incoming if v), None) or str(uuid4())
        g.request_id = request_id
    return request_id


def configure_logging(level: str | int = "INFO") -> None:
    """Replace root handlers with a single JSON stdout handler at ``level``."""

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())
    handler.addFilter(RequestIdFilter())

    root = logging.getLogger()
    root.handlers[:] = [handler]
    if isinstance(level, str):
        level = logging.getLevelNamesMapping().get(level.strip().upper(), logging.INFO)
    root.setLevel(level)


def init_app(app: Flask) -> None:
    """Seed request ids and echo them back on every response."""

    app.logger.addFilter(RequestIdFilter())

    @app.before_request
    def _seed_request_id() -> None:
        ensure_request_id()

    @app.after_request
    def _echo_request_id(response: Response) -> Response:
        response.headers.setdefault(REQUEST_ID_HEADER, ensure_request_id())
        return response


__all__ = ["JSONFormatter", "RequestIdFilter", "configure_logging", "ensure_request_id", "init_app"]
