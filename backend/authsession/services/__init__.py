"""Service layer public API.

Re-exports
----------
- Base primitives (from ``authsession.services._shared.base``)
    * :class:`BaseService`
    * :class:`ServiceContext`

- Session lifecycle (from ``authsession.services.sessions``)
    * :class:`SessionManager`, :class:`SessionPolicy`
    * DTOs: :class:`SessionTokensOut`, :class:`RefreshedSessionOut`,
      :class:`SessionSummaryOut`

- Identity service (from ``authsession.services.identity``)
    * :class:`IdentityService`
    * DTOs: :class:`UserRegisterIn`, :class:`UserAuthIn`, :class:`UserPublicOut`
"""

from __future__ import annotations

from ._shared.base import BaseService, ServiceContext
from .identity.dto import UserAuthIn, UserPublicOut, UserRegisterIn
from .identity.service import IdentityService
from .sessions.dto import RefreshedSessionOut, SessionPolicy, SessionSummaryOut, SessionTokensOut
from .sessions.service import SessionManager

__all__ = [
    # Base
    "BaseService",
    "ServiceContext",
    # Sessions
    "SessionManager",
    "SessionPolicy",
    "SessionTokensOut",
    "RefreshedSessionOut",
    "SessionSummaryOut",
    # Identity
    "IdentityService",
    "UserRegisterIn",
    "UserAuthIn",
    "UserPublicOut",
]
