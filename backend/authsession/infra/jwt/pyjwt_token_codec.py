# authsession/infra/jwt/pyjwt_token_codec.py
from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

import jwt

from authsession.services._shared.errors import ConfigurationError, InvalidTokenError
from authsession.services._shared.ports import TokenCodec
from authsession.services._shared.ports.token_codec import EXPIRES_AT, ISSUED_AT


class JWTTokenCodec(TokenCodec):
    """
    HS256 access-token codec backed by PyJWT.

    Tokens are compact JWS strings (``header.payload.signature``, base64url).
    The claim names ``issued_at``/``expires_at`` are not JWT registered claims,
    so PyJWT never enforces expiry on its own; that check belongs to the
    caller (see :func:`authsession.services._shared.ports.is_expired`).

    :param secret: Symmetric signing key. Missing or empty secrets are a
        fatal configuration error.
    :param ttl: Default lifetime in seconds applied when ``expires_at`` is absent.
    """

    ALGORITHM = "HS256"

    def __init__(self, secret: str | None, *, ttl: int = 3600) -> None:
        if not secret:
            raise ConfigurationError("JWT secret not set in environment (JWT_SECRET_KEY).")
        self._secret = secret
        self.ttl = int(ttl)

    @staticmethod
    def _now() -> int:
        return int(datetime.now(UTC).timestamp())

    def encode(self, claims: Mapping[str, Any]) -> str:
        """
        Sign ``claims``, filling ``issued_at`` and ``expires_at`` when absent.

        :param claims: JSON-serializable claims; caller values win.
        :returns: Signed, URL-safe token.
        """
        payload = dict(claims)
        if payload.get(ISSUED_AT) is None:
            payload[ISSUED_AT] = self._now()
        if payload.get(EXPIRES_AT) is None:
            payload[EXPIRES_AT] = int(payload[ISSUED_AT]) + self.ttl
        return jwt.encode(payload, self._secret, algorithm=self.ALGORITHM)

    def decode(self, token: str) -> dict[str, Any]:
        """
        Verify the signature and return the claims.

        :raises InvalidTokenError: On malformed input, bad signature, or
            missing ``issued_at``/``expires_at``.
        """
        if not isinstance(token, str) or not token:
            raise InvalidTokenError("Invalid token: not a string")
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self.ALGORITHM],
                options={"require": [], "verify_exp": False, "verify_iat": False},
            )
        except jwt.PyJWTError as exc:
            raise InvalidTokenError(f"Invalid token: {exc}") from exc

        if payload.get(ISSUED_AT) is None or payload.get(EXPIRES_AT) is None:
            raise InvalidTokenError("Invalid token: missing issued_at or expires_at")
        try:
            payload[ISSUED_AT] = int(payload[ISSUED_AT])
            payload[EXPIRES_AT] = int(payload[EXPIRES_AT])
        except (TypeError, ValueError) as exc:
            raise InvalidTokenError("Invalid token: non-numeric timestamps") from exc
        return payload
