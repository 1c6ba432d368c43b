"""
IdentityService
===============

Owns the ``User`` aggregate: registration with credential rules and password
verification. It never issues tokens; a successful :meth:`authenticate` is
handed to the session manager by the gateway.
"""

from __future__ import annotations

import re

from sqlalchemy.exc import IntegrityError

from authsession.repositories.user import UserRepository
from authsession.services._shared.base import BaseService
from authsession.services._shared.errors import (
    ConflictError,
    InvalidCredentialsError,
    InvalidInputError,
    NotFoundError,
    violates,
)
from authsession.services.identity.dto import UserAuthIn, UserPublicOut, UserRegisterIn

USERNAME_RE = re.compile(r"^[A-Za-z0-9_]{3,50}$")
PASSWORD_MIN = 6
PASSWORD_MAX = 128


def validate_credentials(username: str, password: str) -> str:
    """
    Apply the registration rules and return the trimmed username.

    :raises InvalidInputError: On the first rule that fails.
    """
    if not isinstance(username, str) or not isinstance(password, str):
        raise InvalidInputError("Username and password must be strings")
    username = username.strip()
    if not USERNAME_RE.fullmatch(username):
        raise InvalidInputError(
            "Username must be 3-50 characters: letters, numbers and underscores only"
        )
    if not PASSWORD_MIN <= len(password) <= PASSWORD_MAX:
        raise InvalidInputError(
            f"Password must be between {PASSWORD_MIN} and {PASSWORD_MAX} characters"
        )
    if "\n" in password or "\r" in password:
        raise InvalidInputError("Password cannot contain newline characters")
    return username


class IdentityService(BaseService):
    """
    Application service for the ``User`` aggregate.

    Responsibilities
    ----------------
    - Register users ensuring username uniqueness.
    - Authenticate credentials.
    - Retrieve users by id.
    """

    # --------------------------------------------------------------------- #
    # Registration
    # --------------------------------------------------------------------- #

    def register_user(self, dto: UserRegisterIn) -> UserPublicOut:
        """
        Register a new user.

        :param dto: User registration input DTO.
        :returns: Public-safe user DTO.
        :raises InvalidInputError: If the credentials break a rule.
        :raises ConflictError: If the username is taken.
        """
        username = validate_credentials(dto.username, dto.password)

        with self.rw_uow() as uow:
            repo: UserRepository = uow.users

            if repo.exists_by_username(username):
                raise ConflictError("User", "username already taken")

            try:
                user = repo.model(username=username, password=dto.password)
                repo.add(user)
            except IntegrityError as exc:
                if violates(exc, "uq_users_username"):
                    raise ConflictError("User", "username already taken") from exc
                raise  # unknown integrity error -> bubble up

            return UserPublicOut(id=user.id, username=user.username)

    # --------------------------------------------------------------------- #
    # Authentication
    # --------------------------------------------------------------------- #

    def authenticate(self, dto: UserAuthIn) -> UserPublicOut:
        """
        Verify a username/password pair.

        :raises InvalidCredentialsError: Unknown user or wrong password (indistinguishable).
        """
        if not isinstance(dto.username, str) or not isinstance(dto.password, str):
            raise InvalidCredentialsError()

        with self.ro_uow() as uow:
            user = uow.users.authenticate(dto.username, dto.password)
            if user is None:
                raise InvalidCredentialsError()
            return UserPublicOut(id=user.id, username=user.username)

    # --------------------------------------------------------------------- #
    # Retrieval
    # --------------------------------------------------------------------- #

    def get_user(self, user_id: int) -> UserPublicOut:
        """
        Retrieve a user by identifier.

        :raises NotFoundError: If user does not exist.
        """
        with self.ro_uow() as uow:
            user = uow.users.get(user_id)
            if user is None:
                raise NotFoundError("User", user_id)
            return UserPublicOut(id=user.id, username=user.username)
