"""Tests for the AuthSession / RotatedRefreshHash models."""

from __future__ import annotations

import pytest
from authsession.models import AuthSession, RotatedRefreshHash
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError


def _row(session_id="sess_a", refresh_hash="a" * 64, user_id=1):
    return AuthSession(
        session_id=session_id,
        user_id=user_id,
        username="alice",
        created_at=100,
        last_activity=100,
        expires_at=1000,
        refresh_hash=refresh_hash,
        refresh_expires_at=500,
    )


class TestAuthSession:
    def test_repr_uses_session_id(self):
        assert repr(_row()) == "<AuthSession session_id=sess_a>"

    def test_refresh_hash_is_unique(self, session):
        session.add(_row("sess_a"))
        session.commit()
        session.add(_row("sess_b"))
        with pytest.raises(IntegrityError):
            session.commit()
        session.rollback()

    def test_deleting_session_removes_rotated_hashes(self, session):
        row = _row()
        row.rotated_hashes = [
            RotatedRefreshHash(token_hash="b" * 64, rotated_at=200),
            RotatedRefreshHash(token_hash="c" * 64, rotated_at=300),
        ]
        session.add(row)
        session.commit()

        session.delete(row)
        session.commit()

        remaining = session.execute(select(func.count()).select_from(RotatedRefreshHash)).scalar_one()
        assert remaining == 0
