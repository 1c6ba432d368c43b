"""Identity service: users and credential verification."""

from __future__ import annotations

from .dto import UserAuthIn, UserPublicOut, UserRegisterIn
from .service import IdentityService, validate_credentials

__all__ = [
    "IdentityService",
    "validate_credentials",
    "UserRegisterIn",
    "UserAuthIn",
    "UserPublicOut",
]
