"""
DTOs for IdentityService.

Data Transfer Objects (DTOs) isolate the service layer from ORM models,
ensuring clear input/output contracts and type safety.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class UserRegisterIn:
    """
    Input DTO for user registration.

    :param username: 3-50 characters of ``[A-Za-z0-9_]``.
    :type username: str
    :param password: Raw password (6-128 characters, no newlines), hashed by the model.
    :type password: str
    """

    username: str
    password: str


@dataclass(frozen=True, slots=True)
class UserAuthIn:
    """Input DTO for authentication."""

    username: str
    password: str


@dataclass(frozen=True, slots=True)
class UserPublicOut:
    """
    Public-safe view of a user.

    :param id: User primary key.
    :type id: int
    :param username: Login handle.
    :type username: str
    """

    id: int
    username: str
