"""Repository package exposing persistence-layer access for users and sessions."""

from __future__ import annotations

from authsession.repositories.base import BaseRepository, SessionScoped
from authsession.repositories.denylist import SqlAlchemyDenylistStore
from authsession.repositories.session import SqlAlchemySessionRepository
from authsession.repositories.user import UserRepository

__all__ = [
    "BaseRepository",
    "SessionScoped",
    "SqlAlchemyDenylistStore",
    "SqlAlchemySessionRepository",
    "UserRepository",
]
