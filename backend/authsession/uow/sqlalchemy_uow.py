"""
Units of work over the Flask-scoped SQLAlchemy session.

``users`` and ``sessions`` share one session, so a use case touching both
commits or rolls back as a whole.
"""

from __future__ import annotations

from sqlalchemy import event
from sqlalchemy.orm import Session

from authsession.core.extensions import db
from authsession.repositories import SqlAlchemySessionRepository, UserRepository
from authsession.uow.base import UnitOfWork


def _reject_writes(session: Session, flush_context, instances) -> None:
    if session.new or session.dirty or session.deleted:
        raise RuntimeError("Read-only UnitOfWork: flush of pending changes blocked.")


class SQLAlchemyUnitOfWork(UnitOfWork):
    """Commit on clean exit; roll back when the block raises or the commit fails."""

    read_only = False

    def __init__(self, session: Session | None = None) -> None:
        self.session = session if session is not None else db.session
        self.users = UserRepository(session=self.session)
        self.sessions = SqlAlchemySessionRepository(session=self.session)

    def __enter__(self) -> SQLAlchemyUnitOfWork:
        if self.read_only:
            event.listen(self.session, "before_flush", _reject_writes)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            if exc_type is None and not self.read_only:
                self.commit()
            else:
                self.rollback()
        except Exception:
            self.rollback()
            raise
        finally:
            if self.read_only:
                event.remove(self.session, "before_flush", _reject_writes)

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()


class SQLAlchemyReadOnlyUnitOfWork(SQLAlchemyUnitOfWork):
    """
    Unit of work for queries: any flush of pending changes raises and the
    transaction is always rolled back.
    """

    read_only = True

    def commit(self) -> None:
        raise RuntimeError("Read-only UnitOfWork does not allow commit().")
