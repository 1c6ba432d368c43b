"""SQL-backed :class:`SessionRepository` (tables ``auth_sessions`` and
``auth_session_rotated_hashes``)."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from authsession.models.session import AuthSession, RotatedRefreshHash
from authsession.repositories.base import SessionScoped
from authsession.services._shared.ports import SessionRecord, SessionRepository


def _to_record(row: AuthSession) -> SessionRecord:
    return SessionRecord(
        session_id=row.session_id,
        user_id=row.user_id,
        username=row.username,
        created_at=row.created_at,
        last_activity=row.last_activity,
        expires_at=row.expires_at,
        refresh_hash=row.refresh_hash,
        refresh_expires_at=row.refresh_expires_at,
        previous_hashes=tuple(h.token_hash for h in row.rotated_hashes),
    )


class SqlAlchemySessionRepository(SessionScoped, SessionRepository):
    """
    Session store on the relational database.

    ``atomic()`` is the transaction boundary: it commits on clean exit and
    rolls back on error. Lookups inside it take ``SELECT ... FOR UPDATE``
    row locks where the dialect supports them; :meth:`replace` is a
    conditional ``UPDATE`` on the expected refresh hash, so the swap stays
    safe across worker processes.
    """

    def __init__(self, session: Session | None = None) -> None:
        super().__init__(session)

    @contextmanager
    def atomic(self) -> Iterator[None]:
        try:
            yield
        except Exception:
            self.session.rollback()
            raise
        else:
            self.session.commit()

    # ------------------------------ reads -----------------------------------

    def _first(self, *criteria: Any) -> AuthSession | None:
        stmt = (
            select(AuthSession)
            .where(*criteria)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self.session.execute(stmt).scalars().first()

    def get(self, session_id: str) -> SessionRecord | None:
        row = self._first(AuthSession.session_id == session_id)
        return _to_record(row) if row is not None else None

    def find_by_refresh_hash(self, token_hash: str) -> SessionRecord | None:
        row = self._first(AuthSession.refresh_hash == token_hash)
        return _to_record(row) if row is not None else None

    def find_by_previous_hash(self, token_hash: str) -> SessionRecord | None:
        owner = select(RotatedRefreshHash.session_id).where(
            RotatedRefreshHash.token_hash == token_hash
        )
        row = self._first(AuthSession.session_id.in_(owner.scalar_subquery()))
        return _to_record(row) if row is not None else None

    def list_for_user(self, user_id: int) -> list[SessionRecord]:
        stmt = (
            select(AuthSession)
            .where(AuthSession.user_id == user_id)
            .order_by(AuthSession.created_at, AuthSession.session_id)
            .execution_options(populate_existing=True)
        )
        return [_to_record(row) for row in self.session.execute(stmt).scalars()]

    # ------------------------------ writes ----------------------------------

    def add(self, record: SessionRecord) -> None:
        if self.session.get(AuthSession, record.session_id) is not None:
            raise ValueError(f"Session {record.session_id} already exists.")
        row = AuthSession(
            session_id=record.session_id,
            user_id=record.user_id,
            username=record.username,
            created_at=record.created_at,
            last_activity=record.last_activity,
            expires_at=record.expires_at,
            refresh_hash=record.refresh_hash,
            refresh_expires_at=record.refresh_expires_at,
        )
        row.rotated_hashes = [
            RotatedRefreshHash(token_hash=h, rotated_at=record.created_at)
            for h in record.previous_hashes
        ]
        self.session.add(row)
        self.flush()

    def replace(self, record: SessionRecord, *, expected_refresh_hash: str) -> bool:
        result = self.session.execute(
            update(AuthSession)
            .where(
                AuthSession.session_id == record.session_id,
                AuthSession.refresh_hash == expected_refresh_hash,
            )
            .values(
                username=record.username,
                last_activity=record.last_activity,
                expires_at=record.expires_at,
                refresh_hash=record.refresh_hash,
                refresh_expires_at=record.refresh_expires_at,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return False

        known = set(
            self.session.execute(
                select(RotatedRefreshHash.token_hash).where(
                    RotatedRefreshHash.session_id == record.session_id
                )
            ).scalars()
        )
        for token_hash in record.previous_hashes:
            if token_hash not in known:
                self.session.add(
                    RotatedRefreshHash(
                        session_id=record.session_id,
                        token_hash=token_hash,
                        rotated_at=record.last_activity,
                    )
                )
        self.flush()
        return True

    def delete(self, session_id: str) -> bool:
        row = self._first(AuthSession.session_id == session_id)
        if row is None:
            return False
        self.session.delete(row)
        self.flush()
        return True

    def delete_for_user(self, user_id: int) -> int:
        rows = self.session.execute(
            select(AuthSession).where(AuthSession.user_id == user_id).with_for_update()
        ).scalars().all()
        for row in rows:
            self.session.delete(row)
        self.flush()
        return len(rows)
