"""End-to-end tests of the auth endpoints through the Flask test client."""

from __future__ import annotations

import pytest
from authsession.services._shared.errors import ConfigurationError

BASE = "/api/v1/auth"
COOKIE = "refreshToken"
COOKIE_PATH = "/api/v1/auth/refresh"


def _register(client, username="alice", password="wonderland"):
    return client.post(f"{BASE}/register", json={"username": username, "password": password})


def _login(client, username="alice", password="wonderland"):
    return client.post(f"{BASE}/login", json={"username": username, "password": password})


def _cookie(client):
    cookie = client.get_cookie(COOKIE, path=COOKIE_PATH)
    return cookie.value if cookie is not None else None


def _bearer(token):
    return {"Authorization": f"Bearer {token}"}


# --------------------------------------------------------------------------- #
# Register / login
# --------------------------------------------------------------------------- #


def test_register_returns_public_user(client):
    resp = _register(client)
    assert resp.status_code == 201
    data = resp.get_json()["data"]
    assert data["username"] == "alice"
    assert isinstance(data["id"], int)
    assert "password" not in data
    # Registration does not start a session.
    assert _cookie(client) is None


def test_register_duplicate_username_conflicts(client):
    _register(client)
    resp = _register(client)
    assert resp.status_code == 409
    assert resp.get_json()["code"] == "conflict"


@pytest.mark.parametrize(
    "payload",
    [
        {},
        {"username": "ab", "password": "wonderland"},
        {"username": "bad name!", "password": "wonderland"},
        {"username": "alice", "password": "short"},
        {"username": "alice", "password": "line\nbreak"},
    ],
)
def test_register_validation_errors(client, payload):
    resp = client.post(f"{BASE}/register", json=payload)
    assert resp.status_code == 422
    body = resp.get_json()
    assert body["code"] == "validation_error"
    assert body["details"]["errors"]


def test_login_sets_refresh_cookie(client):
    _register(client)
    resp = _login(client)

    assert resp.status_code == 200
    data = resp.get_json()["data"]
    assert data["token_type"] == "bearer"
    assert data["user"]["username"] == "alice"
    assert data["access_token"]
    assert isinstance(data["expires_at"], int)
    # The refresh token never appears in the body.
    assert "refresh_token" not in data

    set_cookie = resp.headers["Set-Cookie"]
    assert set_cookie.startswith(f"{COOKIE}=")
    assert "HttpOnly" in set_cookie
    assert f"Path={COOKIE_PATH}" in set_cookie
    assert "SameSite=Lax" in set_cookie
    assert len(_cookie(client)) == 32


def test_login_wrong_password_is_unauthorized(client):
    _register(client)
    resp = _login(client, password="not-the-password")
    assert resp.status_code == 401
    assert resp.get_json()["code"] == "invalid_credentials"
    assert resp.mimetype == "application/problem+json"


def test_login_is_rate_limited(app_factory):
    app = app_factory(RATELIMIT_ENABLED=True, AUTH_LOGIN_RATE_LIMIT="2 per minute")
    client = app.test_client()
    _register(client)

    assert _login(client).status_code == 200
    assert _login(client).status_code == 200
    resp = _login(client)
    assert resp.status_code == 429
    assert resp.get_json()["code"] == "too_many_requests"


# --------------------------------------------------------------------------- #
# Refresh / reuse
# --------------------------------------------------------------------------- #


def test_refresh_rotates_cookie(client):
    _register(client)
    first_access = _login(client).get_json()["data"]["access_token"]
    first_cookie = _cookie(client)

    resp = client.post(f"{BASE}/refresh")

    assert resp.status_code == 200
    data = resp.get_json()["data"]
    assert data["user"]["username"] == "alice"
    assert data["access_token"] != first_access
    assert _cookie(client) not in (None, first_cookie)


def test_refresh_without_cookie_is_bad_request(client):
    resp = client.post(f"{BASE}/refresh")
    assert resp.status_code == 400
    assert resp.get_json()["code"] == "missing_refresh_token"


def test_refresh_with_unknown_cookie_is_unauthorized(client):
    client.set_cookie(COOKIE, "0" * 32, path=COOKIE_PATH)
    resp = client.post(f"{BASE}/refresh")
    assert resp.status_code == 401
    assert resp.get_json()["code"] == "invalid_token"


def test_replayed_cookie_revokes_session(client):
    _register(client)
    _login(client)
    stolen = _cookie(client)
    assert client.post(f"{BASE}/refresh").status_code == 200
    legit = _cookie(client)

    client.set_cookie(COOKIE, stolen, path=COOKIE_PATH)
    resp = client.post(f"{BASE}/refresh")
    assert resp.status_code == 401
    assert resp.get_json()["code"] == "refresh_token_reuse"

    # The legitimate holder is logged out as well.
    client.set_cookie(COOKIE, legit, path=COOKIE_PATH)
    resp = client.post(f"{BASE}/refresh")
    assert resp.status_code == 401
    assert resp.get_json()["code"] == "invalid_token"


# --------------------------------------------------------------------------- #
# Protected routes / logout
# --------------------------------------------------------------------------- #


def test_me_requires_bearer(client):
    resp = client.get(f"{BASE}/me")
    assert resp.status_code == 401
    assert resp.get_json()["code"] == "unauthorized"

    resp = client.get(f"{BASE}/me", headers=_bearer("garbage"))
    assert resp.status_code == 401
    assert resp.get_json()["code"] == "invalid_token"


def test_me_returns_identity(client):
    user_id = _register(client).get_json()["data"]["id"]
    token = _login(client).get_json()["data"]["access_token"]

    resp = client.get(f"{BASE}/me", headers=_bearer(token))
    assert resp.status_code == 200
    data = resp.get_json()["data"]
    assert data["id"] == user_id
    assert data["username"] == "alice"
    assert data["expires_at"] > data["issued_at"]


def test_logout_clears_cookie_and_revokes_access(client):
    _register(client)
    token = _login(client).get_json()["data"]["access_token"]
    cookie = _cookie(client)

    resp = client.post(f"{BASE}/refresh/logout", headers=_bearer(token))
    assert resp.status_code == 200
    assert resp.get_json()["data"]["message"] == "Logged out"
    assert _cookie(client) is None

    assert client.get(f"{BASE}/me", headers=_bearer(token)).status_code == 401
    client.set_cookie(COOKIE, cookie, path=COOKIE_PATH)
    assert client.post(f"{BASE}/refresh").status_code == 401


def test_logout_without_cookie_still_succeeds(client):
    resp = client.post(f"{BASE}/refresh/logout")
    assert resp.status_code == 200
    # Second call is equally harmless.
    assert client.post(f"{BASE}/refresh/logout").status_code == 200


def test_list_and_revoke_all_sessions(client, app):
    _register(client)
    _login(client)
    other = app.test_client()
    token = _login(other).get_json()["data"]["access_token"]

    resp = client.get(f"{BASE}/sessions", headers=_bearer(token))
    assert resp.status_code == 200
    sessions = resp.get_json()["data"]
    assert len(sessions) == 2
    assert {"session_id", "created_at", "last_activity", "expires_at"} <= set(sessions[0])

    resp = other.delete(f"{BASE}/sessions", headers=_bearer(token))
    assert resp.status_code == 200
    assert resp.get_json()["data"]["revoked"] == 2

    # Every device lost its session; the presented access token is revoked too.
    assert client.post(f"{BASE}/refresh").status_code == 401
    assert other.get(f"{BASE}/me", headers=_bearer(token)).status_code == 401


# --------------------------------------------------------------------------- #
# App wiring
# --------------------------------------------------------------------------- #


def test_health(client):
    resp = client.get("/api/v1/health")
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["status"] == "ok"
    assert body["db"] == "ok"
    assert body["session_backend"] == "sql"


def test_redis_backend_end_to_end(app_factory, fake_redis):
    app = app_factory(SESSION_BACKEND="redis", redis_client=fake_redis)
    client = app.test_client()
    _register(client)
    token = _login(client).get_json()["data"]["access_token"]

    assert fake_redis.keys("sess:rt:*")
    assert client.post(f"{BASE}/refresh").status_code == 200

    client.post(f"{BASE}/refresh/logout", headers=_bearer(token))
    assert fake_redis.keys("sess:rt:*") == []
    # Redis is present, so the access token went to the Redis denylist.
    assert fake_redis.keys("deny:at:*")


def test_missing_secret_refuses_to_start(app_factory):
    with pytest.raises(ConfigurationError):
        app_factory(JWT_SECRET_KEY=None)


def test_unknown_backend_refuses_to_start(app_factory):
    with pytest.raises(ConfigurationError):
        app_factory(SESSION_BACKEND="cassandra")


def test_redis_backend_requires_client(app_factory):
    with pytest.raises(ConfigurationError):
        app_factory(SESSION_BACKEND="redis")


def test_cors_preflight_allows_credentials_for_configured_origin(client):
    resp = client.options(
        f"{BASE}/refresh",
        headers={
            "Origin": "http://localhost:5173",
            "Access-Control-Request-Method": "POST",
        },
    )
    assert resp.headers["Access-Control-Allow-Origin"] == "http://localhost:5173"
    assert resp.headers["Access-Control-Allow-Credentials"] == "true"
