"""
Contract tests shared by every SessionRepository adapter.

The same cases run against the in-memory store, the SQLAlchemy store (on the
testing app's SQLite database) and the Redis store (on fakeredis).
"""

from __future__ import annotations

import time

import pytest
from authsession.infra.redis.redis_session_repository import RedisSessionRepository
from authsession.repositories.session import SqlAlchemySessionRepository
from authsession.services._shared.ports import InMemorySessionRepository, SessionRecord


# Redis key TTLs derive from expires_at, so records must live in the present.
NOW = int(time.time())


def _record(session_id="sess_1", user_id=1, refresh_hash="a" * 64, created_at=NOW, prev=()):
    return SessionRecord(
        session_id=session_id,
        user_id=user_id,
        username="alice",
        created_at=created_at,
        last_activity=created_at,
        expires_at=created_at + 30 * 86400,
        refresh_hash=refresh_hash,
        refresh_expires_at=created_at + 7 * 86400,
        previous_hashes=prev,
    )


@pytest.fixture(params=["memory", "sql", "redis"])
def repo(request):
    if request.param == "memory":
        return InMemorySessionRepository()
    if request.param == "sql":
        request.getfixturevalue("app")
        return SqlAlchemySessionRepository()
    return RedisSessionRepository(request.getfixturevalue("fake_redis"))


def test_add_and_get(repo):
    with repo.atomic():
        repo.add(_record())

    stored = repo.get("sess_1")
    assert stored == _record()
    assert repo.get("missing") is None


def test_add_duplicate_id_raises(repo):
    with repo.atomic():
        repo.add(_record())
    with pytest.raises(ValueError):
        repo.add(_record(refresh_hash="b" * 64))


def test_find_by_current_and_previous_hash(repo):
    with repo.atomic():
        repo.add(_record(prev=("p" * 64,)))

    assert repo.find_by_refresh_hash("a" * 64).session_id == "sess_1"
    assert repo.find_by_refresh_hash("p" * 64) is None
    assert repo.find_by_previous_hash("p" * 64).session_id == "sess_1"
    assert repo.find_by_previous_hash("a" * 64) is None
    assert repo.find_by_previous_hash("z" * 64) is None


def test_replace_is_compare_and_swap(repo):
    original = _record()
    with repo.atomic():
        repo.add(original)

    rotated = original.rotated(new_hash="b" * 64, now=NOW + 10, refresh_ttl=100)
    with repo.atomic():
        assert repo.replace(rotated, expected_refresh_hash="a" * 64) is True

    stored = repo.get("sess_1")
    assert stored.refresh_hash == "b" * 64
    assert stored.previous_hashes == ("a" * 64,)
    assert stored.last_activity == NOW + 10
    assert stored.refresh_expires_at == NOW + 110
    assert repo.find_by_refresh_hash("a" * 64) is None
    assert repo.find_by_previous_hash("a" * 64).session_id == "sess_1"

    # A stale writer still expecting the old hash loses.
    stale = original.rotated(new_hash="c" * 64, now=NOW + 11, refresh_ttl=100)
    with repo.atomic():
        assert repo.replace(stale, expected_refresh_hash="a" * 64) is False
    assert repo.get("sess_1").refresh_hash == "b" * 64


def test_replace_missing_session_returns_false(repo):
    with repo.atomic():
        assert repo.replace(_record(), expected_refresh_hash="a" * 64) is False


def test_previous_hashes_keep_rotation_order(repo):
    record = _record()
    with repo.atomic():
        repo.add(record)
    expected = record.refresh_hash
    for i, new_hash in enumerate(["b" * 64, "c" * 64, "d" * 64]):
        record = record.rotated(new_hash=new_hash, now=NOW + 10 + i, refresh_ttl=100)
        with repo.atomic():
            assert repo.replace(record, expected_refresh_hash=expected)
        expected = new_hash

    assert repo.get("sess_1").previous_hashes == ("a" * 64, "b" * 64, "c" * 64)


def test_delete(repo):
    with repo.atomic():
        repo.add(_record(prev=("p" * 64,)))

    with repo.atomic():
        assert repo.delete("sess_1") is True
    assert repo.get("sess_1") is None
    assert repo.find_by_refresh_hash("a" * 64) is None
    assert repo.find_by_previous_hash("p" * 64) is None

    with repo.atomic():
        assert repo.delete("sess_1") is False


def test_list_and_delete_for_user(repo):
    with repo.atomic():
        repo.add(_record("sess_b", refresh_hash="b" * 64, created_at=NOW + 5))
        repo.add(_record("sess_a", refresh_hash="a" * 64, created_at=NOW))
        repo.add(_record("sess_x", user_id=2, refresh_hash="x" * 64))

    # Ordering is the manager's job; adapters only promise membership.
    assert {r.session_id for r in repo.list_for_user(1)} == {"sess_a", "sess_b"}

    with repo.atomic():
        assert repo.delete_for_user(1) == 2
    assert repo.list_for_user(1) == []
    assert [r.session_id for r in repo.list_for_user(2)] == ["sess_x"]

    with repo.atomic():
        assert repo.delete_for_user(1) == 0


def test_atomic_scope_propagates_errors(repo):
    with pytest.raises(RuntimeError), repo.atomic():
        raise RuntimeError("boom")
