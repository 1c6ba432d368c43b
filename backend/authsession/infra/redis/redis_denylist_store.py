from datetime import UTC, datetime
from typing import cast

import redis  # type: ignore[import-untyped]

from authsession.services._shared.ports import TokenDenylistStore


class RedisTokenDenylistStore(TokenDenylistStore):
    """
    Minimal denylist for **access tokens** by jti.

    Each entry is a marker key whose TTL ends with the token's own expiry.
    """

    def __init__(self, r: redis.Redis):
        self.r = r

    @staticmethod
    def _k(jti: str) -> str:
        return f"deny:at:{jti}"

    def is_revoked(self, jti: str) -> bool:
        return cast(int, self.r.exists(self._k(jti))) == 1

    def revoke_jti(self, *, jti: str, expires_at: int) -> None:
        now = int(datetime.now(UTC).timestamp())
        ttl = max(1, expires_at - now)
        # store a small marker with TTL; idempotent
        self.r.set(self._k(jti), "1", ex=ttl)
