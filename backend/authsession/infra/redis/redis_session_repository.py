# comments in English; reST docstrings
from __future__ import annotations

from collections.abc import Iterator, Mapping
from contextlib import nullcontext
from datetime import UTC, datetime
from typing import Any

import redis  # type: ignore[import-untyped]

from authsession.services._shared.ports import SessionRecord, SessionRepository

# Keys outlive the absolute expiry by this much so an expired session is still
# found (and reported as expired) instead of silently vanishing.
RETENTION_GRACE = 24 * 60 * 60

_FIELDS = (
    "user_id",
    "username",
    "created_at",
    "last_activity",
    "expires_at",
    "refresh_hash",
    "refresh_expires_at",
)


def _s(value: Any, default: str = "") -> str:
    if value is None:
        return default
    if isinstance(value, bytes | bytearray):
        return value.decode()
    return str(value)


class RedisSessionRepository(SessionRepository):
    """
    Redis-backed session store.

    Layout::

        sess:{id}            hash   session fields
        sess:{id}:prev       list   retired refresh hashes, oldest first
        sess:rt:{hash}       string current refresh hash -> session id
        sess:prev:{hash}     string retired refresh hash -> session id
        sess:u:{user_id}     set    session ids of a user

    Writes are MULTI/EXEC transactions; :meth:`replace` is a WATCH-based
    compare-and-swap on the current refresh hash. ``atomic()`` is a no-op
    because no write depends on a multi-key read outside those transactions.

    :param r: A Redis client (already connected).
    """

    def __init__(self, r: redis.Redis) -> None:
        self.r = r

    # -------------------- helpers --------------------

    @staticmethod
    def _k(session_id: str) -> str:
        return f"sess:{session_id}"

    @staticmethod
    def _kp(session_id: str) -> str:
        return f"sess:{session_id}:prev"

    @staticmethod
    def _krt(token_hash: str) -> str:
        return f"sess:rt:{token_hash}"

    @staticmethod
    def _kprev(token_hash: str) -> str:
        return f"sess:prev:{token_hash}"

    @staticmethod
    def _ku(user_id: int) -> str:
        return f"sess:u:{user_id}"

    @staticmethod
    def _ttl(record: SessionRecord) -> int:
        now = int(datetime.now(UTC).timestamp())
        return max(1, record.expires_at - now + RETENTION_GRACE)

    @staticmethod
    def _mapping(record: SessionRecord) -> dict[str, str]:
        return {name: str(getattr(record, name)) for name in _FIELDS}

    @staticmethod
    def _from_hash(session_id: str, h: Mapping[Any, Any], prev: list[Any]) -> SessionRecord:
        def field(name: str) -> str:
            return _s(h.get(name, h.get(name.encode())))

        return SessionRecord(
            session_id=session_id,
            user_id=int(field("user_id")),
            username=field("username"),
            created_at=int(field("created_at")),
            last_activity=int(field("last_activity")),
            expires_at=int(field("expires_at")),
            refresh_hash=field("refresh_hash"),
            refresh_expires_at=int(field("refresh_expires_at")),
            previous_hashes=tuple(_s(p) for p in prev),
        )

    # -------------------- API ------------------------

    def atomic(self) -> nullcontext[None]:
        return nullcontext()

    def add(self, record: SessionRecord) -> None:
        key = self._k(record.session_id)
        if self.r.exists(key):
            raise ValueError(f"Session {record.session_id} already exists.")
        ttl = self._ttl(record)

        pipe = self.r.pipeline(transaction=True)
        pipe.hset(key, mapping=self._mapping(record))
        pipe.expire(key, ttl)
        if record.previous_hashes:
            pipe.rpush(self._kp(record.session_id), *record.previous_hashes)
            pipe.expire(self._kp(record.session_id), ttl)
            for token_hash in record.previous_hashes:
                pipe.set(self._kprev(token_hash), record.session_id, ex=ttl)
        pipe.set(self._krt(record.refresh_hash), record.session_id, ex=ttl)
        pipe.sadd(self._ku(record.user_id), record.session_id)
        pipe.execute()

    def get(self, session_id: str) -> SessionRecord | None:
        h = self.r.hgetall(self._k(session_id))
        if not h:
            return None
        prev = self.r.lrange(self._kp(session_id), 0, -1)
        return self._from_hash(session_id, h, prev)

    def find_by_refresh_hash(self, token_hash: str) -> SessionRecord | None:
        session_id = self.r.get(self._krt(token_hash))
        if session_id is None:
            return None
        record = self.get(_s(session_id))
        # The index may lag behind a concurrent rotation; the hash is authoritative.
        if record is None or record.refresh_hash != token_hash:
            return None
        return record

    def find_by_previous_hash(self, token_hash: str) -> SessionRecord | None:
        session_id = self.r.get(self._kprev(token_hash))
        if session_id is None:
            return None
        record = self.get(_s(session_id))
        if record is None or token_hash not in record.previous_hashes:
            return None
        return record

    def replace(self, record: SessionRecord, *, expected_refresh_hash: str) -> bool:
        """
        Compare-and-swap ``record`` over the stored session.

        Uses Redis WATCH/MULTI/EXEC (optimistic locking): if the session hash
        changes between the read and the commit the transaction is retried,
        and the retry observes the new refresh hash and gives up.
        """
        key = self._k(record.session_id)
        key_prev = self._kp(record.session_id)
        ttl = self._ttl(record)

        while True:
            try:
                with self.r.pipeline() as p:
                    p.watch(key, key_prev)

                    current = _s(p.hget(key, "refresh_hash"))
                    if not current or current != expected_refresh_hash:
                        p.unwatch()
                        return False
                    known = {_s(v) for v in p.lrange(key_prev, 0, -1)}
                    retired = [h for h in record.previous_hashes if h not in known]

                    p.multi()
                    p.hset(key, mapping=self._mapping(record))
                    p.expire(key, ttl)
                    if retired:
                        p.rpush(key_prev, *retired)
                        for token_hash in retired:
                            p.set(self._kprev(token_hash), record.session_id, ex=ttl)
                    p.expire(key_prev, ttl)
                    p.delete(self._krt(expected_refresh_hash))
                    p.set(self._krt(record.refresh_hash), record.session_id, ex=ttl)
                    p.execute()
                return True
            except redis.WatchError:
                # Concurrent modification detected; retry loop
                continue

    def delete(self, session_id: str) -> bool:
        record = self.get(session_id)
        if record is None:
            return False
        pipe = self.r.pipeline(transaction=True)
        pipe.delete(self._k(session_id), self._kp(session_id))
        pipe.delete(self._krt(record.refresh_hash))
        for token_hash in record.previous_hashes:
            pipe.delete(self._kprev(token_hash))
        pipe.srem(self._ku(record.user_id), session_id)
        pipe.execute()
        return True

    def _user_session_ids(self, user_id: int) -> Iterator[str]:
        yield from sorted(_s(m) for m in self.r.smembers(self._ku(user_id)))

    def list_for_user(self, user_id: int) -> list[SessionRecord]:
        records: list[SessionRecord] = []
        stale: list[str] = []
        for session_id in self._user_session_ids(user_id):
            record = self.get(session_id)
            if record is None:
                # Underlying hash missing (expired) -> mark for cleanup
                stale.append(session_id)
            else:
                records.append(record)
        if stale:
            self.r.srem(self._ku(user_id), *stale)
        return sorted(records, key=lambda r: (r.created_at, r.session_id))

    def delete_for_user(self, user_id: int) -> int:
        removed = sum(1 for sid in list(self._user_session_ids(user_id)) if self.delete(sid))
        self.r.delete(self._ku(user_id))
        return removed
