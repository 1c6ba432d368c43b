"""Build the session core once per app and expose it through ``app.extensions``."""

from __future__ import annotations

import logging
from typing import cast

from flask import Flask, current_app

from authsession.infra.jwt.pyjwt_token_codec import JWTTokenCodec
from authsession.infra.redis.redis_denylist_store import RedisTokenDenylistStore
from authsession.infra.redis.redis_session_repository import RedisSessionRepository
from authsession.repositories.denylist import SqlAlchemyDenylistStore
from authsession.repositories.session import SqlAlchemySessionRepository
from authsession.services._shared.errors import ConfigurationError
from authsession.services._shared.ports import (
    InMemoryDenylistStore,
    InMemorySessionRepository,
    SessionRepository,
    TokenDenylistStore,
)
from authsession.services.sessions import SessionManager, SessionPolicy

log = logging.getLogger(__name__)

EXTENSION_KEY = "session_manager"
BACKENDS = ("sql", "redis", "memory")


def _build_repository(app: Flask, backend: str, lock_timeout: float) -> SessionRepository:
    if backend == "sql":
        return SqlAlchemySessionRepository()
    if backend == "memory":
        return InMemorySessionRepository(lock_timeout=lock_timeout)
    client = app.extensions.get("redis_client")
    if client is None:
        raise ConfigurationError("SESSION_BACKEND=redis requires REDIS_URL.")
    return RedisSessionRepository(client)


def _build_denylist(app: Flask, backend: str) -> TokenDenylistStore:
    client = app.extensions.get("redis_client")
    if client is not None:
        return RedisTokenDenylistStore(client)
    if backend == "sql":
        return SqlAlchemyDenylistStore()
    # Only the per-process memory backend lands here.
    return InMemoryDenylistStore()


def init_app(app: Flask) -> SessionManager:
    """
    Wire codec, repository and denylist into a :class:`SessionManager`.

    :raises ConfigurationError: Missing ``JWT_SECRET_KEY``, unknown
        ``SESSION_BACKEND`` or a Redis backend without a client.
    """
    backend = str(app.config.get("SESSION_BACKEND", "sql")).strip().lower()
    if backend not in BACKENDS:
        raise ConfigurationError(f"Unknown SESSION_BACKEND {backend!r}; expected one of {BACKENDS}.")

    policy = SessionPolicy(
        access_ttl=int(app.config["ACCESS_TOKEN_TTL"]),
        refresh_ttl=int(app.config["REFRESH_TOKEN_TTL"]),
        session_ttl=int(app.config["SESSION_TTL"]),
        lock_timeout=float(app.config["SESSION_LOCK_TIMEOUT"]),
    )
    codec = JWTTokenCodec(app.config.get("JWT_SECRET_KEY"), ttl=policy.access_ttl)
    manager = SessionManager(
        repository=_build_repository(app, backend, policy.lock_timeout),
        codec=codec,
        denylist=_build_denylist(app, backend),
        policy=policy,
    )
    app.extensions[EXTENSION_KEY] = manager
    log.info("session manager ready", extra={"event": "session.backend_ready"})
    return manager


def get_session_manager() -> SessionManager:
    """Return the manager bound to the current app."""
    return cast(SessionManager, current_app.extensions[EXTENSION_KEY])
