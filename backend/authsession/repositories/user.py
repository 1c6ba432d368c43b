"""User repository: lookups used by registration and login."""

from __future__ import annotations

from typing import cast

from sqlalchemy import select

from authsession.models.user import User
from authsession.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Persistence-only repository for :class:`User`.

    It never issues tokens or touches sessions; that is the session manager's job.
    """

    model = User

    def get_by_username(self, username: str) -> User | None:
        """Fetch a user by exact (trimmed) username."""
        stmt = select(User).where(User.username == username.strip())
        return cast(User | None, self.session.execute(stmt).scalars().first())

    def exists_by_username(self, username: str) -> bool:
        stmt = select(User.id).where(User.username == username.strip())
        return bool(self.session.execute(stmt).first())

    def authenticate(self, username: str, password: str) -> User | None:
        """
        Return the user when ``password`` matches, else ``None``.

        :param username: Login handle.
        :param password: Raw password to verify.
        """
        user = self.get_by_username(username)
        if not user or not user.verify_password(password):
            return None
        return user
