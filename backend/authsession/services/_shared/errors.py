"""
Domain-level exceptions used within the service layer.

These exceptions are **framework-agnostic** and never import Flask or HTTP
helpers. They are the stable contract between the session core, the
repositories and the gateway; the translation to RFC 7807 responses lives in
``authsession/core/errors.py``.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError


def violates(exc: IntegrityError, constraint_name: str) -> bool:
    """
    Check whether an IntegrityError originates from a specific constraint.

    :param exc: The exception raised by SQLAlchemy during flush/commit.
    :param constraint_name: Constraint name to look for (e.g. ``uq_users_username``).
    :returns: ``True`` if the error message mentions the constraint.
    """
    message = str(exc.orig).lower() if exc.orig else ""
    return constraint_name.lower() in message


# --------------------------------------------------------------------------- #
# Base type
# --------------------------------------------------------------------------- #


class ServiceError(Exception):
    """
    Base class for all service-level errors.

    Notes
    -----
    - These are *not* HTTP errors.
    - The gateway maps each subclass to a status class and a stable code.
    """


# --------------------------------------------------------------------------- #
# Session lifecycle errors
# --------------------------------------------------------------------------- #


class InvalidInputError(ServiceError):
    """Raised when a session operation receives malformed arguments."""


class InvalidTokenError(ServiceError):
    """Raised for malformed, unsigned, expired-access or unknown tokens."""

    def __init__(self, message: str = "Invalid token") -> None:
        super().__init__(message)


class SessionExpiredError(ServiceError):
    """Raised when the absolute or the refresh window of a session has passed.

    The session has already been deleted when this error propagates.
    """

    def __init__(self, message: str = "Session expired") -> None:
        super().__init__(message)


class ReuseDetectedError(ServiceError):
    """Raised when a previously rotated refresh token is presented again.

    This is a security event: the whole session has been revoked. Callers
    must never downgrade it to :class:`InvalidTokenError`.
    """

    def __init__(self, message: str = "Refresh token reuse detected. Session invalidated.") -> None:
        super().__init__(message)


class ConfigurationError(ServiceError):
    """Raised at startup when mandatory configuration (signing secret) is absent."""


class StoreUnavailableError(ServiceError):
    """Raised when the session store cannot be locked or reached in time."""


# --------------------------------------------------------------------------- #
# Identity errors
# --------------------------------------------------------------------------- #


class InvalidCredentialsError(ServiceError):
    """Raised when a username/password pair does not match."""

    def __init__(self, message: str = "Invalid username or password") -> None:
        super().__init__(message)


@dataclass(slots=True)
class NotFoundError(ServiceError):
    """
    Raised when an entity is not found in the repository.

    :param entity: Entity name (e.g., "User").
    :param key: Identifier or search key.
    """

    entity: str
    key: str | int

    def __str__(self) -> str:
        return f"{self.entity} not found: {self.key}"


@dataclass(slots=True)
class ConflictError(ServiceError):
    """
    Raised when a unique constraint or business rule conflict occurs.

    :param entity: Entity name (e.g., "User").
    :param detail: Short human-readable explanation.
    """

    entity: str
    detail: str

    def __str__(self) -> str:
        return f"Conflict on {self.entity}: {self.detail}"
