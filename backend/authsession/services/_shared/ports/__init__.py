"""
authsession.services._shared.ports
==================================

*Ports* (hexagonal interfaces) that the session core depends on.

Modules
-------
- :mod:`token_codec`:
    Defines :class:`~.TokenCodec` (sign/verify access tokens),
    :class:`~.AccessClaims` and :func:`~.is_expired`.

- :mod:`session_repository`:
    Defines :class:`~.SessionRecord` and :class:`~.SessionRepository`, the
    atomic key-value contract for session persistence.

- :mod:`denylist_store`:
    Defines :class:`~.TokenDenylistStore` for early revocation of access tokens.

Concrete adapters (SQLAlchemy, Redis, PyJWT) live under
``authsession.repositories`` and ``authsession.infra``; the in-memory
implementations here back the ``memory`` backend and the unit tests.
"""

from __future__ import annotations

from .denylist_store import InMemoryDenylistStore, TokenDenylistStore
from .session_repository import InMemorySessionRepository, SessionRecord, SessionRepository
from .token_codec import AccessClaims, TokenCodec, is_expired

__all__ = [
    "TokenCodec",
    "AccessClaims",
    "is_expired",
    "SessionRecord",
    "SessionRepository",
    "InMemorySessionRepository",
    "TokenDenylistStore",
    "InMemoryDenylistStore",
]
