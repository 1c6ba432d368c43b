"""SQL-backed :class:`TokenDenylistStore` (table ``auth_revoked_access_tokens``)."""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from authsession.models.session import RevokedAccessToken
from authsession.repositories.base import SessionScoped
from authsession.services._shared.ports import TokenDenylistStore


def _now_ts() -> int:
    return int(datetime.now(UTC).timestamp())


class SqlAlchemyDenylistStore(SessionScoped, TokenDenylistStore):
    """
    Denylist shared by every worker that talks to the same database.

    :meth:`revoke_jti` is its own transaction and prunes rows whose token has
    expired, so the table only holds tokens that are still alive.
    """

    def __init__(self, session: Session | None = None) -> None:
        super().__init__(session)

    def is_revoked(self, jti: str) -> bool:
        stmt = select(RevokedAccessToken.jti).where(
            RevokedAccessToken.jti == jti,
            RevokedAccessToken.expires_at >= _now_ts(),
        )
        return self.session.execute(stmt).first() is not None

    def revoke_jti(self, *, jti: str, expires_at: int) -> None:
        now = _now_ts()
        try:
            self.session.execute(delete(RevokedAccessToken).where(RevokedAccessToken.expires_at < now))
            if expires_at >= now:
                self.session.merge(RevokedAccessToken(jti=jti, expires_at=expires_at))
            self.session.commit()
        except IntegrityError:
            # Another worker denied the same jti first.
            self.session.rollback()
        except Exception:
            self.session.rollback()
            raise
