"""RFC 7807 problem responses for every error the API can raise.

Service errors carry no HTTP knowledge; :data:`SERVICE_ERROR_MAP` decides
their status and stable ``code``. Bodies always include ``request_id`` so a
client report can be matched with the JSON logs.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Any

from flask import Flask, Response, jsonify, request
from marshmallow import ValidationError as MarshmallowValidationError
from sqlalchemy.exc import IntegrityError, OperationalError
from werkzeug.exceptions import HTTPException

from authsession.core.logger import ensure_request_id
from authsession.services._shared.errors import (
    ConfigurationError,
    ConflictError,
    InvalidCredentialsError,
    InvalidInputError,
    InvalidTokenError,
    NotFoundError,
    ReuseDetectedError,
    ServiceError,
    SessionExpiredError,
    StoreUnavailableError,
)

log = logging.getLogger(__name__)

PROBLEM_MIMETYPE = "application/problem+json"

# First match wins, so subclasses must precede their bases.
SERVICE_ERROR_MAP: tuple[tuple[type[ServiceError], HTTPStatus, str], ...] = (
    (ReuseDetectedError, HTTPStatus.UNAUTHORIZED, "refresh_token_reuse"),
    (SessionExpiredError, HTTPStatus.UNAUTHORIZED, "session_expired"),
    (InvalidTokenError, HTTPStatus.UNAUTHORIZED, "invalid_token"),
    (InvalidCredentialsError, HTTPStatus.UNAUTHORIZED, "invalid_credentials"),
    (InvalidInputError, HTTPStatus.UNPROCESSABLE_ENTITY, "invalid_input"),
    (NotFoundError, HTTPStatus.NOT_FOUND, "not_found"),
    (ConflictError, HTTPStatus.CONFLICT, "conflict"),
    (StoreUnavailableError, HTTPStatus.SERVICE_UNAVAILABLE, "service_unavailable"),
    (ConfigurationError, HTTPStatus.INTERNAL_SERVER_ERROR, "configuration_error"),
)

# Stable codes for plain HTTP errors raised by Flask, Werkzeug or Flask-Limiter.
HTTP_STATUS_CODES: dict[int, str] = {
    400: "bad_request",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    409: "conflict",
    413: "payload_too_large",
    415: "unsupported_media_type",
    422: "unprocessable_entity",
    429: "too_many_requests",
    500: "internal_server_error",
    503: "service_unavailable",
}


def service_error_status(err: ServiceError) -> tuple[int, str]:
    """Return ``(status, code)`` for a service error; unknown subclasses are 400."""
    for exc_type, status, code in SERVICE_ERROR_MAP:
        if isinstance(err, exc_type):
            return int(status), code
    return int(HTTPStatus.BAD_REQUEST), "bad_request"


def problem(
    status: int,
    code: str,
    message: str,
    *,
    details: dict[str, Any] | None = None,
    exc_info: bool = False,
) -> tuple[Response, int]:
    """
    Build and log a problem response.

    5xx are logged at ERROR, everything else at WARNING. ``message`` must be
    safe to show to clients.

    :returns: ``(response, status)`` as expected by Flask error handlers.
    """
    status = int(status)
    body: dict[str, Any] = {
        "type": "about:blank",
        "title": HTTPStatus(status).phrase,
        "status": status,
        "detail": message,
        "instance": request.path,
        "code": code,
        "request_id": ensure_request_id(),
    }
    if details:
        body["details"] = details

    level = logging.ERROR if status >= 500 else logging.WARNING
    log.log(
        level,
        "%s %s: %s",
        status,
        code,
        message,
        extra={"event": "http.error", "endpoint": request.endpoint},
        exc_info=exc_info,
    )

    resp = jsonify(body)
    resp.mimetype = PROBLEM_MIMETYPE
    return resp, status


class APIError(Exception):
    """
    Error raised by the gateway itself (as opposed to the service layer).

    :param message: Client-facing description.
    :param status_code: HTTP status, ``400`` by default.
    :param code: Stable snake_case identifier.
    :param details: Optional structured payload.
    """

    def __init__(
        self,
        message: str,
        status_code: int = 400,
        code: str = "bad_request",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = int(status_code)
        self.code = code
        self.details = details or {}


class Unauthorized(APIError):
    """401 when no bearer token was presented."""

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message, status_code=HTTPStatus.UNAUTHORIZED, code="unauthorized")


class MissingRefreshToken(APIError):
    """400 when the refresh cookie is absent."""

    def __init__(self, message: str = "No refresh token provided") -> None:
        super().__init__(message, status_code=HTTPStatus.BAD_REQUEST, code="missing_refresh_token")


def init_app(app: Flask) -> None:
    """Register the problem+json handlers on ``app``."""

    @app.errorhandler(APIError)
    def handle_api_error(err: APIError):
        return problem(err.status_code, err.code, err.message, details=err.details or None)

    @app.errorhandler(ServiceError)
    def handle_service_error(err: ServiceError):
        # Reuse was already logged as a security event by the session manager.
        status, code = service_error_status(err)
        return problem(status, code, str(err) or HTTPStatus(status).phrase, exc_info=status >= 500)

    @app.errorhandler(HTTPException)
    def handle_http_exception(err: HTTPException):
        status = int(err.code or HTTPStatus.INTERNAL_SERVER_ERROR)
        code = HTTP_STATUS_CODES.get(status, "error")
        if status == HTTPStatus.NOT_FOUND:
            message = f"Route '{request.path}' not found"
        else:
            message = (err.description or code.replace("_", " ").capitalize()).strip()
        return problem(status, code, message)

    @app.errorhandler(MarshmallowValidationError)
    def handle_validation_error(err: MarshmallowValidationError):
        return problem(
            HTTPStatus.UNPROCESSABLE_ENTITY,
            "validation_error",
            "Validation failed",
            details={"errors": err.messages},
        )

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(err: IntegrityError):
        return problem(HTTPStatus.CONFLICT, "conflict", "Resource conflict", exc_info=True)

    @app.errorhandler(OperationalError)
    def handle_operational_error(err: OperationalError):
        return problem(
            HTTPStatus.SERVICE_UNAVAILABLE,
            "service_unavailable",
            "Service temporarily unavailable",
            exc_info=True,
        )

    @app.errorhandler(Exception)
    def handle_unexpected_error(err: Exception):
        return problem(
            HTTPStatus.INTERNAL_SERVER_ERROR, "internal_server_error", "Unexpected error", exc_info=True
        )
