"""Declarative helpers shared by the persistence models (typed 2.0)."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import BigInteger, DateTime, Integer, func
from sqlalchemy.orm import Mapped, mapped_column


def epoch_column(**kwargs: Any) -> Mapped[int]:
    """Non-null unix-seconds column; session timestamps are compared as integers."""
    return mapped_column(BigInteger, nullable=False, **kwargs)


class TimestampMixin:
    """Database-managed ``created_at`` / ``updated_at`` (timezone-aware)."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )


class PKMixin:
    id: Mapped[int] = mapped_column(Integer, primary_key=True)


class ReprMixin:
    """``<ClassName key=value>`` using ``__repr_key__`` (``id`` unless overridden)."""

    __repr_key__ = "id"

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.__repr_key__}={getattr(self, self.__repr_key__, None)}>"
