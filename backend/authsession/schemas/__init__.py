"""Marshmallow schemas for the HTTP gateway."""

from __future__ import annotations

from .auth import (
    LoginSchema,
    RegisterSchema,
    SessionSummarySchema,
    TokenResponseSchema,
    UserSchema,
    WhoAmISchema,
)

__all__ = [
    "LoginSchema",
    "RegisterSchema",
    "SessionSummarySchema",
    "TokenResponseSchema",
    "UserSchema",
    "WhoAmISchema",
]
