"""Generic repository base for SQLAlchemy 2.x.

Repositories are persistence-only:

* They never implement use cases or domain policies.
* They never call commit/rollback; a Unit of Work (or a repository's own
  ``atomic()`` scope, for the session store) owns the transaction. The
  access-token denylist is the exception: each revocation commits itself.
"""

from __future__ import annotations

from typing import Any, Generic, TypeVar, cast

from sqlalchemy import select
from sqlalchemy.orm import InstrumentedAttribute, Session

from authsession.core.extensions import db

E = TypeVar("E")  # SQLAlchemy mapped entity type


class SessionScoped:
    """Hold an optional injected session, falling back to the Flask-scoped one."""

    def __init__(self, session: Session | None = None) -> None:
        self._session: Session | None = session

    @property
    def session(self) -> Session:
        """
        Return the active SQLAlchemy session.

        Prefers the injected session when provided; otherwise uses the
        Flask-scoped session managed by the extension.
        """
        if self._session is not None:
            return self._session
        return cast(Session, db.session)

    def flush(self) -> None:
        """Flush pending changes to the database without committing."""
        self.session.flush()


class BaseRepository(SessionScoped, Generic[E]):
    """
    Minimal CRUD for one mapped entity.

    Subclasses set :attr:`model`.
    """

    model: type[E]

    def _pk_attr(self) -> InstrumentedAttribute[Any]:
        pk = getattr(self.model, "id", None)
        if not isinstance(pk, InstrumentedAttribute):
            raise RuntimeError(f"{self.model!r} has no 'id' primary key.")
        return pk

    def add(self, instance: E) -> E:
        """Stage a new entity and flush to materialize the PK."""
        self.session.add(instance)
        self.flush()
        return instance

    def get(self, entity_id: Any) -> E | None:
        stmt = select(self.model).where(self._pk_attr() == entity_id)
        return cast(E | None, self.session.execute(stmt).scalars().first())

    def get_for_update(self, entity_id: Any) -> E | None:
        """Retrieve an entity by PK with a ``FOR UPDATE`` lock (when supported)."""
        stmt = select(self.model).where(self._pk_attr() == entity_id).with_for_update()
        return cast(E | None, self.session.execute(stmt).scalars().first())

    def delete(self, instance: E) -> None:
        self.session.delete(instance)
        self.flush()
