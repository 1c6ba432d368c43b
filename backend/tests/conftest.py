"""Pytest fixtures: a fresh app and in-memory SQLite database per test.

Session-core unit tests build a :class:`SessionManager` over the in-memory
repository and need no app at all; gateway and SQL tests use ``app``.
"""

from __future__ import annotations

import os

import fakeredis
import pytest
from authsession.core.config import TestingConfig
from authsession.core.extensions import db as _db
from authsession.factory import create_app
from authsession.infra.jwt.pyjwt_token_codec import JWTTokenCodec
from authsession.services._shared.ports import InMemoryDenylistStore, InMemorySessionRepository
from authsession.services.sessions import SessionManager, SessionPolicy

TEST_SECRET = TestingConfig.JWT_SECRET_KEY


def _build_app(**overrides):
    # Ensure env-based config does not leak into tests
    os.environ.pop("DATABASE_URL", None)
    redis_client = overrides.pop("redis_client", None)
    return create_app(TestingConfig, overrides=overrides or None, redis_client=redis_client)


@pytest.fixture
def app_factory():
    """Build extra apps with config overrides; tables are created for each."""
    created = []

    def _make(**overrides):
        app = _build_app(**overrides)
        ctx = app.app_context()
        ctx.push()
        _db.create_all()
        created.append(ctx)
        return app

    yield _make

    for ctx in reversed(created):
        _db.session.remove()
        _db.drop_all()
        ctx.pop()


@pytest.fixture
def app(app_factory):
    """Testing app with the SQL session backend and tables created."""
    return app_factory()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def session(app):
    """Flask-scoped SQLAlchemy session, also wired into Factory Boy."""
    from tests.factories import SQLAlchemySession

    SQLAlchemySession.set(_db.session)
    yield _db.session
    SQLAlchemySession.set(None)


@pytest.fixture
def fake_redis():
    """Provide a fresh FakeRedis instance for each test."""
    r = fakeredis.FakeRedis(decode_responses=True)
    r.flushall()
    return r


# -- Session core without Flask ------------------------------------------------


@pytest.fixture
def codec():
    return JWTTokenCodec(TEST_SECRET)


@pytest.fixture
def repository():
    return InMemorySessionRepository()


@pytest.fixture
def denylist():
    return InMemoryDenylistStore()


@pytest.fixture
def manager(repository, codec, denylist):
    return SessionManager(
        repository=repository,
        codec=codec,
        denylist=denylist,
        policy=SessionPolicy(lock_timeout=2.0),
    )
