"""Persistence models backing the SQL session store and access-token denylist."""

from __future__ import annotations

from sqlalchemy import ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from authsession.core.extensions import db

from .base import PKMixin, ReprMixin, epoch_column


class AuthSession(ReprMixin, db.Model):
    """
    One login session. Timestamps are unix seconds.

    ``user_id`` is a plain indexed integer, not a foreign key: the session
    store does not depend on the users table.
    """

    __tablename__ = "auth_sessions"
    __repr_key__ = "session_id"

    session_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    username: Mapped[str] = mapped_column(String(50), nullable=False)
    created_at: Mapped[int] = epoch_column()
    last_activity: Mapped[int] = epoch_column()
    expires_at: Mapped[int] = epoch_column()
    refresh_hash: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    refresh_expires_at: Mapped[int] = epoch_column()

    rotated_hashes: Mapped[list[RotatedRefreshHash]] = relationship(
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="RotatedRefreshHash.id",
        lazy="selectin",
    )


class RotatedRefreshHash(PKMixin, ReprMixin, db.Model):
    """A refresh-token hash retired by rotation; kept for reuse detection."""

    __tablename__ = "auth_session_rotated_hashes"

    session_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("auth_sessions.session_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    token_hash: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    rotated_at: Mapped[int] = epoch_column()

    session: Mapped[AuthSession] = relationship(back_populates="rotated_hashes")


class RevokedAccessToken(ReprMixin, db.Model):
    """An access token denied before its natural expiry, keyed by ``jti``."""

    __tablename__ = "auth_revoked_access_tokens"
    __repr_key__ = "jti"

    jti: Mapped[str] = mapped_column(String(64), primary_key=True)
    expires_at: Mapped[int] = epoch_column(index=True)
