"""Cross-origin policy for browser clients of the auth API."""

from __future__ import annotations

from flask import Flask
from flask_cors import CORS

ALLOWED_HEADERS = ("Authorization", "Content-Type", "X-Request-ID")


def parse_origins(raw: str | None) -> list[str]:
    """Split ``CORS_ORIGINS``; an empty result or ``["*"]`` means any origin."""
    return [o.strip() for o in (raw or "").split(",") if o.strip()]


def init_app(app: Flask) -> None:
    """
    Apply CORS to ``/api/*``.

    The refresh token rides in a cookie, which browsers only send
    cross-origin with credentials enabled. Credentials require an explicit
    origin list, so a wildcard configuration serves anonymous requests only.
    """
    origins = parse_origins(app.config.get("CORS_ORIGINS"))
    explicit = bool(origins) and origins != ["*"]

    CORS(
        app,
        resources={r"/api/*": {"origins": origins if explicit else "*"}},
        supports_credentials=explicit,
        allow_headers=list(ALLOWED_HEADERS),
        expose_headers=["X-Request-ID"],
        max_age=app.config.get("CORS_MAX_AGE", 600),
    )
