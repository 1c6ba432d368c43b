# authsession/services/sessions/dto.py
from __future__ import annotations

from dataclasses import dataclass

DAY = 24 * 60 * 60

# --------------------------- Output DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class SessionTokensOut:
    """
    Tokens issued by a fresh login.

    :param access_token: Signed access token.
    :type access_token: str
    :param refresh_token: Plaintext refresh token; never stored server-side.
    :type refresh_token: str
    :param access_expires_at: Expiry of ``access_token`` (unix seconds).
    :type access_expires_at: int
    :param session_id: Identifier of the created session.
    :type session_id: str
    """

    access_token: str
    refresh_token: str
    access_expires_at: int
    session_id: str


@dataclass(frozen=True, slots=True)
class RefreshedSessionOut:
    """
    Result of a successful rotation.

    :param access_token: Newly minted access token.
    :type access_token: str
    :param refresh_token: Replacement refresh token; the presented one is retired.
    :type refresh_token: str
    :param user_id: Session owner.
    :type user_id: int
    :param username: Username snapshot of the session.
    :type username: str
    :param access_expires_at: Expiry of ``access_token`` (unix seconds).
    :type access_expires_at: int
    """

    access_token: str
    refresh_token: str
    user_id: int
    username: str
    access_expires_at: int


@dataclass(frozen=True, slots=True)
class SessionSummaryOut:
    """Public view of an active session (no token material)."""

    session_id: str
    created_at: int
    last_activity: int
    expires_at: int
    refresh_expires_at: int


# ------------------------ Config DTO -------------------------------------- #


@dataclass(frozen=True, slots=True)
class SessionPolicy:
    """
    Lifetimes applied by the session manager, in seconds.

    :param access_ttl: Access token lifetime.
    :param refresh_ttl: Sliding refresh window renewed on every rotation.
    :param session_ttl: Absolute session ceiling, never extended.
    :param lock_timeout: Maximum wait for the exclusive section.
    """

    access_ttl: int = 3600
    refresh_ttl: int = 7 * DAY
    session_ttl: int = 30 * DAY
    lock_timeout: float = 5.0
