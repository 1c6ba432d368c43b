"""Authentication-related Marshmallow schemas."""

from __future__ import annotations

from marshmallow import EXCLUDE, Schema, ValidationError, fields, validate


def _no_newlines(value: str) -> None:
    if "\n" in value or "\r" in value:
        raise ValidationError("Password cannot contain newline characters.")


class RegisterSchema(Schema):
    """Input payload for account registration."""

    class Meta:
        unknown = EXCLUDE

    username = fields.String(
        required=True,
        validate=[
            validate.Length(min=3, max=50),
            validate.Regexp(
                r"^[A-Za-z0-9_]+$",
                error="Username can only contain letters, numbers and underscores.",
            ),
        ],
    )
    password = fields.String(
        required=True,
        validate=[validate.Length(min=6, max=128), _no_newlines],
    )


class LoginSchema(Schema):
    """Input payload for authenticating a user."""

    class Meta:
        unknown = EXCLUDE

    username = fields.String(required=True, validate=validate.Length(min=1, max=50))
    password = fields.String(required=True, validate=validate.Length(min=1, max=128))


class UserSchema(Schema):
    """Public user representation."""

    id = fields.Integer(required=True)
    username = fields.String(required=True)


class TokenResponseSchema(Schema):
    """Response payload of login and refresh."""

    access_token = fields.String(required=True)
    token_type = fields.String(dump_default="bearer")
    expires_at = fields.Integer(required=True)
    user = fields.Nested(UserSchema, required=True)


class WhoAmISchema(Schema):
    """Claims of the access token presented on the request."""

    id = fields.Integer(required=True, attribute="user_id")
    username = fields.String(required=True)
    issued_at = fields.Integer(required=True)
    expires_at = fields.Integer(required=True)


class SessionSummarySchema(Schema):
    """One active session; token material is never exposed."""

    session_id = fields.String(required=True)
    created_at = fields.Integer(required=True)
    last_activity = fields.Integer(required=True)
    expires_at = fields.Integer(required=True)
    refresh_expires_at = fields.Integer(required=True)
