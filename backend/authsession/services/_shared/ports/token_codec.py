from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol

from authsession.services._shared.errors import InvalidTokenError

ISSUED_AT = "issued_at"
EXPIRES_AT = "expires_at"


class TokenCodec(Protocol):
    """
    Port for signing and verifying access tokens.

    ``decode`` verifies the signature and the presence of ``issued_at`` and
    ``expires_at`` only. It does **not** reject expired tokens; use
    :func:`is_expired` at the call site.
    """

    def encode(self, claims: Mapping[str, Any]) -> str: ...

    def decode(self, token: str) -> dict[str, Any]: ...


def is_expired(claims: Mapping[str, Any], now: int) -> bool:
    """
    Return ``True`` when the claims carry no expiry or the expiry has passed.

    A missing ``expires_at`` counts as expired.
    """
    exp = claims.get(EXPIRES_AT)
    if exp is None:
        return True
    return int(exp) < now


@dataclass(frozen=True, slots=True)
class AccessClaims:
    """
    Typed view over a verified access token payload.

    :ivar user_id: Owner of the session that minted the token.
    :ivar username: Username snapshot at login time.
    :ivar issued_at: Unix seconds.
    :ivar expires_at: Unix seconds.
    :ivar jti: Unique token id (used by the denylist).
    """

    user_id: int
    username: str
    issued_at: int
    expires_at: int
    jti: str | None = None

    @classmethod
    def from_mapping(cls, claims: Mapping[str, Any]) -> AccessClaims:
        """Build the view, raising :class:`InvalidTokenError` on missing identity claims."""
        user_id = claims.get("user_id")
        username = claims.get("username")
        if not isinstance(user_id, int) or isinstance(user_id, bool):
            raise InvalidTokenError("Token missing user_id")
        if not isinstance(username, str) or not username:
            raise InvalidTokenError("Token missing username")
        jti = claims.get("jti")
        return cls(
            user_id=user_id,
            username=username,
            issued_at=int(claims[ISSUED_AT]),
            expires_at=int(claims[EXPIRES_AT]),
            jti=str(jti) if jti is not None else None,
        )
