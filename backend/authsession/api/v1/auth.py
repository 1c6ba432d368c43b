"""Authentication endpoints: credentials, rotating refresh cookie and sessions."""

from __future__ import annotations

import logging

from flask import Blueprint, current_app, request

from authsession.api.deps import (
    bearer_token,
    clear_refresh_cookie,
    current_claims,
    json_response,
    read_refresh_cookie,
    require_auth,
    set_refresh_cookie,
    timing,
)
from authsession.core.errors import MissingRefreshToken
from authsession.core.extensions import limiter
from authsession.core.services import get_session_manager
from authsession.schemas import (
    LoginSchema,
    RegisterSchema,
    SessionSummarySchema,
    TokenResponseSchema,
    UserSchema,
    WhoAmISchema,
)
from authsession.services._shared.errors import ServiceError
from authsession.services.identity import IdentityService, UserAuthIn, UserRegisterIn

log = logging.getLogger(__name__)

bp = Blueprint("auth", __name__)

register_schema = RegisterSchema()
login_schema = LoginSchema()
user_schema = UserSchema()
whoami_schema = WhoAmISchema()
token_schema = TokenResponseSchema()
sessions_schema = SessionSummarySchema(many=True)


def _login_rate_limit() -> str:
    return str(current_app.config.get("AUTH_LOGIN_RATE_LIMIT", "5 per minute"))


def _token_body(access_token: str, expires_at: int, user_id: int, username: str) -> dict:
    return {
        "data": token_schema.dump(
            {
                "access_token": access_token,
                "expires_at": expires_at,
                "user": {"id": user_id, "username": username},
            }
        )
    }


@bp.post("/register")
@timing
def register():
    """Create an account. Does not log in."""

    data = register_schema.load(request.get_json(silent=True) or {})
    user = IdentityService().register_user(UserRegisterIn(**data))
    return json_response({"data": user_schema.dump(user)}, status=201)


@bp.post("/login")
@limiter.limit(_login_rate_limit)
@timing
def login():
    """Verify credentials, start a session and set the refresh cookie."""

    data = login_schema.load(request.get_json(silent=True) or {})
    user = IdentityService().authenticate(UserAuthIn(**data))
    tokens = get_session_manager().create_session(user.id, user.username)
    response = json_response(
        _token_body(tokens.access_token, tokens.access_expires_at, user.id, user.username)
    )
    return set_refresh_cookie(response, tokens.refresh_token)


@bp.post("/refresh")
@timing
def refresh():
    """Rotate the refresh cookie and mint a new access token."""

    refresh_token = read_refresh_cookie()
    if refresh_token is None:
        raise MissingRefreshToken()
    out = get_session_manager().refresh_session(refresh_token)
    response = json_response(
        _token_body(out.access_token, out.access_expires_at, out.user_id, out.username)
    )
    return set_refresh_cookie(response, out.refresh_token)


@bp.post("/refresh/logout")
@timing
def logout():
    """End the session of the refresh cookie. Always succeeds and clears the cookie."""

    manager = get_session_manager()
    refresh_token = read_refresh_cookie()
    access_token = bearer_token()
    try:
        if refresh_token is not None:
            manager.invalidate_session(refresh_token)
        if access_token is not None:
            manager.revoke_access_token(access_token)
    except ServiceError as exc:
        log.warning("logout incomplete: %s", exc, extra={"event": "session.logout_failed"})
    response = json_response({"data": {"message": "Logged out"}})
    return clear_refresh_cookie(response)


@bp.get("/me")
@require_auth
@timing
def me():
    """Return the identity carried by the access token."""

    return json_response({"data": whoami_schema.dump(current_claims())})


@bp.get("/sessions")
@require_auth
@timing
def list_sessions():
    """List the caller's active sessions."""

    sessions = get_session_manager().list_sessions(current_claims().user_id)
    return json_response({"data": sessions_schema.dump(sessions)})


@bp.delete("/sessions")
@require_auth
@timing
def revoke_sessions():
    """Log out everywhere: revoke every session and the presented access token."""

    manager = get_session_manager()
    removed = manager.invalidate_user_sessions(current_claims().user_id)
    token = bearer_token()
    if token is not None:
        manager.revoke_access_token(token)
    response = json_response({"data": {"revoked": removed}})
    return clear_refresh_cookie(response)
