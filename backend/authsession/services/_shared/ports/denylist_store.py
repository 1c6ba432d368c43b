from __future__ import annotations

import threading
from datetime import UTC, datetime
from typing import Protocol


class TokenDenylistStore(Protocol):
    """
    Abstraction for a denylist of **access tokens** keyed by ``jti``.

    Entries only need to live until the token's own expiry. Methods are
    expected to be idempotent.
    """

    def is_revoked(self, jti: str) -> bool: ...

    def revoke_jti(self, *, jti: str, expires_at: int) -> None: ...


def _now_ts() -> int:
    return int(datetime.now(UTC).timestamp())


class InMemoryDenylistStore(TokenDenylistStore):
    """
    Process-local denylist.

    Expired entries are pruned on every write, so the map never holds more
    than the tokens still alive.
    """

    def __init__(self) -> None:
        self._revoked: dict[str, int] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._revoked)

    def is_revoked(self, jti: str) -> bool:
        with self._lock:
            expires_at = self._revoked.get(jti)
        return expires_at is not None and expires_at >= _now_ts()

    def revoke_jti(self, *, jti: str, expires_at: int) -> None:
        now = _now_ts()
        with self._lock:
            self._prune_locked(now)
            if expires_at >= now:
                self._revoked[jti] = expires_at

    def prune(self, now: int | None = None) -> int:
        """Forget entries whose token has expired anyway. :returns: entries removed."""
        with self._lock:
            return self._prune_locked(_now_ts() if now is None else now)

    def _prune_locked(self, now: int) -> int:
        stale = [jti for jti, exp in self._revoked.items() if exp < now]
        for jti in stale:
            del self._revoked[jti]
        return len(stale)
