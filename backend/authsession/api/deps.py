"""Request helpers shared by the API blueprints."""

from __future__ import annotations

import functools
import time
from collections.abc import Callable
from typing import Any, TypeVar, cast

from flask import Response, current_app, g, jsonify, request

from authsession.core.errors import Unauthorized
from authsession.core.services import get_session_manager
from authsession.services._shared.ports import AccessClaims

F = TypeVar("F", bound=Callable[..., Any])

BEARER_PREFIX = "bearer "


def json_response(payload: Any, *, status: int = 200) -> Response:
    """Return a JSON response enforcing a consistent MIME type."""

    response = jsonify(payload)
    response.status_code = status
    return response


def timing(func: F) -> F:
    """Decorator capturing handler execution time in milliseconds."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        start = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000
            request_endpoint = getattr(request, "endpoint", None)
            current_app.logger.debug(
                "request.elapsed",
                extra={"endpoint": request_endpoint, "elapsed_ms": round(elapsed_ms, 2)},
            )

    return wrapper  # type: ignore[return-value]


# ------------------------------ access token --------------------------------


def bearer_token() -> str | None:
    """Return the token of an ``Authorization: Bearer`` header, if any."""

    header = request.headers.get("Authorization", "")
    if not header.lower().startswith(BEARER_PREFIX):
        return None
    token = header[len(BEARER_PREFIX) :].strip()
    return token or None


def require_auth(func: F) -> F:
    """Ensure the request carries a valid, unexpired, non-revoked access token."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        token = bearer_token()
        if token is None:
            raise Unauthorized("Missing bearer token")
        g.access_claims = get_session_manager().verify_access_token(token)
        return func(*args, **kwargs)

    return wrapper  # type: ignore[return-value]


def current_claims() -> AccessClaims:
    """Claims verified by :func:`require_auth` for this request."""

    return cast(AccessClaims, g.access_claims)


# ------------------------------ refresh cookie ------------------------------


def read_refresh_cookie() -> str | None:
    name = current_app.config["REFRESH_COOKIE_NAME"]
    return request.cookies.get(name) or None


def set_refresh_cookie(response: Response, refresh_token: str) -> Response:
    """Attach the HTTP-only refresh cookie, scoped to the refresh endpoints."""

    cfg = current_app.config
    response.set_cookie(
        cfg["REFRESH_COOKIE_NAME"],
        refresh_token,
        max_age=int(cfg["REFRESH_TOKEN_TTL"]),
        path=cfg["REFRESH_COOKIE_PATH"],
        secure=bool(cfg["REFRESH_COOKIE_SECURE"]),
        httponly=True,
        samesite=cfg["REFRESH_COOKIE_SAMESITE"],
    )
    return response


def clear_refresh_cookie(response: Response) -> Response:
    cfg = current_app.config
    response.delete_cookie(
        cfg["REFRESH_COOKIE_NAME"],
        path=cfg["REFRESH_COOKIE_PATH"],
        secure=bool(cfg["REFRESH_COOKIE_SECURE"]),
        httponly=True,
        samesite=cfg["REFRESH_COOKIE_SAMESITE"],
    )
    return response
