"""Session lifecycle service and its DTOs."""

from __future__ import annotations

from .dto import RefreshedSessionOut, SessionPolicy, SessionSummaryOut, SessionTokensOut
from .service import SessionManager, generate_refresh_token, hash_refresh_token, new_session_id

__all__ = [
    "SessionManager",
    "generate_refresh_token",
    "hash_refresh_token",
    "new_session_id",
    # DTOs
    "SessionPolicy",
    "SessionTokensOut",
    "RefreshedSessionOut",
    "SessionSummaryOut",
]
