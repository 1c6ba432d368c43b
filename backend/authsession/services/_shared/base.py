# authsession/services/_shared/base.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime

from authsession.uow.sqlalchemy_uow import (
    SQLAlchemyReadOnlyUnitOfWork,
    SQLAlchemyUnitOfWork,
)


@dataclass(slots=True)
class ServiceContext:
    """
    Carry cross-cutting request-scoped data.

    :param actor_id: Authenticated user identifier.
    :param request_id: Correlation id for logging/tracing.
    """

    actor_id: int | None = None
    request_id: str | None = None


class BaseService:
    """
    Base class for application services.

    Responsibilities
    ----------------
    * Provide helpers to run read-only and read-write units of work.
    * Provide a single clock so tests can freeze time in one place.

    Notes
    -----
    Services never touch the global session directly; they go through a
    Unit of Work or an injected repository.
    """

    def __init__(self, *, ctx: ServiceContext | None = None) -> None:
        """
        Initialize the base service.

        :param ctx: Optional request-scoped context.
        :type ctx: ServiceContext | None
        """
        self.ctx = ctx or ServiceContext()

    # -------------------------- UoW helpers ---------------------------------

    def rw_uow(self) -> SQLAlchemyUnitOfWork:
        """Create a read-write Unit of Work."""
        return SQLAlchemyUnitOfWork()

    def ro_uow(self) -> SQLAlchemyReadOnlyUnitOfWork:
        """Create a read-only Unit of Work (always rolls back)."""
        return SQLAlchemyReadOnlyUnitOfWork()

    # -------------------------- Clock ---------------------------------------

    @staticmethod
    def now_utc() -> datetime:
        return datetime.now(UTC)

    def now_ts(self) -> int:
        """Current time as integer unix seconds."""
        return int(self.now_utc().timestamp())
