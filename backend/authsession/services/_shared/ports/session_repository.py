from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import AbstractContextManager, contextmanager
from dataclasses import dataclass, replace
from typing import Protocol

from authsession.services._shared.errors import StoreUnavailableError


@dataclass(frozen=True, slots=True)
class SessionRecord:
    """
    Server-side state of one login session.

    All timestamps are unix seconds.

    :ivar session_id: Opaque identifier, immutable.
    :ivar user_id: Owner user id, immutable.
    :ivar username: Username snapshot taken at login.
    :ivar created_at: Creation time.
    :ivar last_activity: Time of the last successful rotation.
    :ivar expires_at: Absolute lifetime ceiling, never extended.
    :ivar refresh_hash: SHA-256 of the only refresh token currently accepted.
    :ivar refresh_expires_at: Sliding refresh window, extended on rotation.
    :ivar previous_hashes: Every hash superseded by rotation, oldest first.
    """

    session_id: str
    user_id: int
    username: str
    created_at: int
    last_activity: int
    expires_at: int
    refresh_hash: str
    refresh_expires_at: int
    previous_hashes: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.refresh_hash in self.previous_hashes:
            raise ValueError("Current refresh hash cannot also be a previous hash.")

    def is_expired(self, now: int) -> bool:
        """Return ``True`` once either the absolute or the refresh window has passed."""
        return now > self.expires_at or now > self.refresh_expires_at

    def rotated(self, *, new_hash: str, now: int, refresh_ttl: int) -> SessionRecord:
        """Return a copy where ``new_hash`` is current and the old hash is retired."""
        return replace(
            self,
            refresh_hash=new_hash,
            previous_hashes=(*self.previous_hashes, self.refresh_hash),
            refresh_expires_at=now + refresh_ttl,
            last_activity=now,
        )


class SessionRepository(Protocol):
    """
    Durable key-value store of :class:`SessionRecord` objects.

    Every method is atomic on its own. ``atomic()`` opens the scope in which
    the manager runs a read-check-mutate sequence; adapters backed by a
    transactional store commit on clean exit and roll back on error.
    ``replace`` is a compare-and-swap on the current refresh hash.
    """

    def atomic(self) -> AbstractContextManager[None]: ...

    def add(self, record: SessionRecord) -> None: ...

    def get(self, session_id: str) -> SessionRecord | None: ...

    def find_by_refresh_hash(self, token_hash: str) -> SessionRecord | None: ...

    def find_by_previous_hash(self, token_hash: str) -> SessionRecord | None: ...

    def replace(self, record: SessionRecord, *, expected_refresh_hash: str) -> bool:
        """Overwrite the stored record if its current hash still equals ``expected_refresh_hash``."""
        ...

    def delete(self, session_id: str) -> bool:
        """Delete the session. :returns: ``True`` if it existed."""
        ...

    def list_for_user(self, user_id: int) -> list[SessionRecord]: ...

    def delete_for_user(self, user_id: int) -> int:
        """Delete every session of ``user_id``. :returns: Number of sessions removed."""
        ...


class InMemorySessionRepository(SessionRepository):
    """
    Process-local session store.

    .. note::
       A re-entrant lock guards every access; ``atomic()`` holds it for the
       whole read-check-mutate sequence.
    """

    def __init__(self, *, lock_timeout: float = 5.0) -> None:
        self._records: dict[str, SessionRecord] = {}
        self._lock = threading.RLock()
        self._lock_timeout = lock_timeout

    @contextmanager
    def atomic(self) -> Iterator[None]:
        if not self._lock.acquire(timeout=self._lock_timeout):
            raise StoreUnavailableError("Session store is busy")
        try:
            yield
        finally:
            self._lock.release()

    def add(self, record: SessionRecord) -> None:
        with self._lock:
            if record.session_id in self._records:
                raise ValueError(f"Session {record.session_id} already exists.")
            self._records[record.session_id] = record

    def get(self, session_id: str) -> SessionRecord | None:
        with self._lock:
            return self._records.get(session_id)

    def find_by_refresh_hash(self, token_hash: str) -> SessionRecord | None:
        with self._lock:
            for record in self._records.values():
                if record.refresh_hash == token_hash:
                    return record
            return None

    def find_by_previous_hash(self, token_hash: str) -> SessionRecord | None:
        with self._lock:
            for record in self._records.values():
                if token_hash in record.previous_hashes:
                    return record
            return None

    def replace(self, record: SessionRecord, *, expected_refresh_hash: str) -> bool:
        with self._lock:
            current = self._records.get(record.session_id)
            if current is None or current.refresh_hash != expected_refresh_hash:
                return False
            self._records[record.session_id] = record
            return True

    def delete(self, session_id: str) -> bool:
        with self._lock:
            return self._records.pop(session_id, None) is not None

    def list_for_user(self, user_id: int) -> list[SessionRecord]:
        with self._lock:
            return [r for r in self._records.values() if r.user_id == user_id]

    def delete_for_user(self, user_id: int) -> int:
        with self._lock:
            doomed = [sid for sid, r in self._records.items() if r.user_id == user_id]
            for sid in doomed:
                del self._records[sid]
            return len(doomed)

    def __len__(self) -> int:
        return len(self._records)
