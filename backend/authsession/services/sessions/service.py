# authsession/services/sessions/service.py
from __future__ import annotations

import hashlib
import logging
import secrets
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from uuid import uuid4

from authsession.services._shared.base import BaseService, ServiceContext
from authsession.services._shared.errors import (
    InvalidInputError,
    InvalidTokenError,
    ReuseDetectedError,
    ServiceError,
    SessionExpiredError,
    StoreUnavailableError,
)
from authsession.services._shared.ports import (
    AccessClaims,
    SessionRecord,
    SessionRepository,
    TokenCodec,
    TokenDenylistStore,
    is_expired,
)
from authsession.services._shared.ports.token_codec import EXPIRES_AT, ISSUED_AT
from authsession.services.sessions.dto import (
    RefreshedSessionOut,
    SessionPolicy,
    SessionSummaryOut,
    SessionTokensOut,
)

log = logging.getLogger(__name__)

SESSION_ID_PREFIX = "sess_"
REFRESH_TOKEN_BYTES = 16
MAX_ROTATION_ATTEMPTS = 3
# Matches the width of the stored username column.
MAX_USERNAME_LENGTH = 50


def generate_refresh_token() -> str:
    """Return 128 bits of CSPRNG output as 32 lowercase hex characters."""
    return secrets.token_hex(REFRESH_TOKEN_BYTES)


def hash_refresh_token(token: str) -> str:
    """SHA-256 hex digest of the UTF-8 token; the only form ever stored."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def new_session_id() -> str:
    return f"{SESSION_ID_PREFIX}{uuid4().hex}"


class SessionManager(BaseService):
    """
    Session lifecycle: creation, refresh-token rotation with reuse
    detection, and invalidation.

    Responsibilities
    ----------------
    * Mint an access/refresh pair per login and persist the session.
    * Rotate the refresh token on every refresh; a retired token presented
      again revokes the whole session.
    * Enforce the sliding refresh window and the absolute session ceiling.
    * Verify access tokens for protected routes (expiry and denylist).

    Concurrency
    -----------
    Every read-check-mutate sequence runs under a process-wide lock **and**
    inside ``repository.atomic()``. Across processes the compare-and-swap in
    :meth:`SessionRepository.replace` guarantees that at most one of two
    concurrent refreshes with the same token wins; the loser re-reads the
    store, finds its hash retired and is treated as a reuse.

    Errors are raised only after the atomic scope has committed, so a
    deletion triggered by expiry or reuse is durable when the caller sees it.
    """

    def __init__(
        self,
        *,
        repository: SessionRepository,
        codec: TokenCodec,
        denylist: TokenDenylistStore | None = None,
        policy: SessionPolicy | None = None,
        ctx: ServiceContext | None = None,
    ) -> None:
        super().__init__(ctx=ctx)
        self.repository = repository
        self.codec = codec
        self.denylist = denylist
        self.policy = policy or SessionPolicy()
        self._mutex = threading.Lock()

    # ------------------------------ helpers ---------------------------------

    @contextmanager
    def _exclusive(self) -> Iterator[None]:
        if not self._mutex.acquire(timeout=self.policy.lock_timeout):
            raise StoreUnavailableError("Timed out waiting for the session lock")
        try:
            with self.repository.atomic():
                yield
        finally:
            self._mutex.release()

    def _mint_access_token(self, user_id: int, username: str, now: int) -> tuple[str, int]:
        expires_at = now + self.policy.access_ttl
        token = self.codec.encode(
            {
                "user_id": user_id,
                "username": username,
                "jti": uuid4().hex,
                ISSUED_AT: now,
                EXPIRES_AT: expires_at,
            }
        )
        return token, expires_at

    @staticmethod
    def _require_user_id(user_id: object) -> int:
        if isinstance(user_id, bool) or not isinstance(user_id, int):
            raise InvalidInputError("User ID must be an integer")
        if user_id <= 0:
            raise InvalidInputError("Invalid user ID")
        return user_id

    # ------------------------------ lifecycle -------------------------------

    def create_session(self, user_id: int, username: str) -> SessionTokensOut:
        """
        Start a new session for an authenticated user.

        :param user_id: Positive integer user id.
        :param username: Non-blank username; stored trimmed.
        :returns: Access token, plaintext refresh token, access expiry and session id.
        :raises InvalidInputError: On a non-positive id, or a blank or over-long username.
        """
        user_id = self._require_user_id(user_id)
        if not isinstance(username, str):
            raise InvalidInputError("Username must be a string")
        username = username.strip()
        if not username:
            raise InvalidInputError("Username cannot be empty")
        if len(username) > MAX_USERNAME_LENGTH:
            raise InvalidInputError(f"Username cannot exceed {MAX_USERNAME_LENGTH} characters")

        now = self.now_ts()
        refresh_token = generate_refresh_token()
        record = SessionRecord(
            session_id=new_session_id(),
            user_id=user_id,
            username=username,
            created_at=now,
            last_activity=now,
            expires_at=now + self.policy.session_ttl,
            refresh_hash=hash_refresh_token(refresh_token),
            refresh_expires_at=now + self.policy.refresh_ttl,
        )
        with self._exclusive():
            self.repository.add(record)

        access_token, access_expires_at = self._mint_access_token(user_id, username, now)
        log.info(
            "session created",
            extra={"event": "session.created", "session_id": record.session_id, "user_id": user_id},
        )
        return SessionTokensOut(
            access_token=access_token,
            refresh_token=refresh_token,
            access_expires_at=access_expires_at,
            session_id=record.session_id,
        )

    def refresh_session(self, refresh_token: str) -> RefreshedSessionOut:
        """
        Exchange a current refresh token for a new access/refresh pair.

        :raises InvalidTokenError: Token empty or unknown.
        :raises SessionExpiredError: Session past either window; it is deleted.
        :raises ReuseDetectedError: Token was already rotated; session is deleted.
        :raises StoreUnavailableError: Lock timeout or persistent contention.
        """
        if not isinstance(refresh_token, str) or not refresh_token:
            raise InvalidTokenError("Invalid refresh token")
        token_hash = hash_refresh_token(refresh_token)

        for _ in range(MAX_ROTATION_ATTEMPTS):
            result = self._rotate_once(token_hash)
            if result is not None:
                return result
        raise StoreUnavailableError("Session changed concurrently; please retry")

    def _rotate_once(self, token_hash: str) -> RefreshedSessionOut | None:
        """One lookup-and-swap attempt. ``None`` means the swap lost a race."""
        failure: ServiceError

        with self._exclusive():
            now = self.now_ts()
            current = self.repository.find_by_refresh_hash(token_hash)
            if current is not None:
                if current.is_expired(now):
                    self.repository.delete(current.session_id)
                    failure = SessionExpiredError()
                    log.info(
                        "session expired",
                        extra={
                            "event": "session.expired",
                            "session_id": current.session_id,
                            "user_id": current.user_id,
                        },
                    )
                else:
                    new_token = generate_refresh_token()
                    candidate = current.rotated(
                        new_hash=hash_refresh_token(new_token),
                        now=now,
                        refresh_ttl=self.policy.refresh_ttl,
                    )
                    if not self.repository.replace(candidate, expected_refresh_hash=token_hash):
                        return None
                    # Leaving the scope normally commits the swap.
                    return self._finish_rotation(candidate, new_token, now)
            else:
                reused = self.repository.find_by_previous_hash(token_hash)
                if reused is not None:
                    self.repository.delete(reused.session_id)
                    failure = ReuseDetectedError()
                    log.error(
                        "refresh token reuse detected; session revoked",
                        extra={
                            "event": "security.refresh_token_reuse",
                            "session_id": reused.session_id,
                            "user_id": reused.user_id,
                        },
                    )
                else:
                    failure = InvalidTokenError("Invalid refresh token")

        # Expiry, reuse and unknown tokens end here, after the scope committed.
        raise failure

    def _finish_rotation(self, record: SessionRecord, new_token: str, now: int) -> RefreshedSessionOut:
        access_token, access_expires_at = self._mint_access_token(record.user_id, record.username, now)
        log.info(
            "session rotated",
            extra={"event": "session.rotated", "session_id": record.session_id, "user_id": record.user_id},
        )
        return RefreshedSessionOut(
            access_token=access_token,
            refresh_token=new_token,
            user_id=record.user_id,
            username=record.username,
            access_expires_at=access_expires_at,
        )

    def invalidate_session(self, refresh_token: str) -> None:
        """
        Delete the session a refresh token belongs to (logout).

        Idempotent: unknown tokens and an empty string are no-ops. Retired
        tokens also resolve to their session.

        :raises InvalidInputError: If ``refresh_token`` is not a string.
        """
        if not isinstance(refresh_token, str):
            raise InvalidInputError("Refresh token must be a string")
        if not refresh_token:
            return
        token_hash = hash_refresh_token(refresh_token)

        with self._exclusive():
            record = self.repository.find_by_refresh_hash(token_hash)
            if record is None:
                record = self.repository.find_by_previous_hash(token_hash)
            if record is None:
                return
            self.repository.delete(record.session_id)

        log.info(
            "session invalidated",
            extra={"event": "session.invalidated", "session_id": record.session_id, "user_id": record.user_id},
        )

    # ------------------------------ per-user --------------------------------

    def list_sessions(self, user_id: int) -> list[SessionSummaryOut]:
        """Active (non-expired) sessions of ``user_id``, oldest first."""
        user_id = self._require_user_id(user_id)
        now = self.now_ts()
        with self._exclusive():
            records = self.repository.list_for_user(user_id)
        active = sorted((r for r in records if not r.is_expired(now)), key=lambda r: r.created_at)
        return [
            SessionSummaryOut(
                session_id=r.session_id,
                created_at=r.created_at,
                last_activity=r.last_activity,
                expires_at=r.expires_at,
                refresh_expires_at=r.refresh_expires_at,
            )
            for r in active
        ]

    def invalidate_user_sessions(self, user_id: int) -> int:
        """Revoke every session of ``user_id``. :returns: Number of sessions removed."""
        user_id = self._require_user_id(user_id)
        with self._exclusive():
            removed = self.repository.delete_for_user(user_id)
        log.info(
            "user sessions invalidated",
            extra={"event": "session.invalidated", "user_id": user_id},
        )
        return removed

    # ------------------------------ access tokens ---------------------------

    def verify_access_token(self, token: str) -> AccessClaims:
        """
        Decode an access token and apply the expiry and denylist checks.

        :raises InvalidTokenError: Bad signature, missing claims, expired or revoked.
        """
        claims = self.codec.decode(token)
        if is_expired(claims, self.now_ts()):
            raise InvalidTokenError("Token expired")
        access = AccessClaims.from_mapping(claims)
        if access.jti and self.denylist is not None and self.denylist.is_revoked(access.jti):
            raise InvalidTokenError("Token revoked")
        return access

    def revoke_access_token(self, token: str) -> None:
        """Deny an access token until its natural expiry. Unreadable tokens are ignored."""
        if self.denylist is None:
            return
        try:
            claims = AccessClaims.from_mapping(self.codec.decode(token))
        except InvalidTokenError:
            return
        if claims.jti:
            self.denylist.revoke_jti(jti=claims.jti, expires_at=claims.expires_at)
