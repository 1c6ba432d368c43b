from authsession.models.session import AuthSession, RevokedAccessToken, RotatedRefreshHash
from authsession.models.user import User

__all__ = [
    "AuthSession",
    "RevokedAccessToken",
    "RotatedRefreshHash",
    "User",
]
