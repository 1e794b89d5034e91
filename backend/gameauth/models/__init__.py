from gameauth.db.base import Base
from gameauth.models.refresh_token import RefreshToken
from gameauth.models.user import User

__all__ = [
    "Base",
    "RefreshToken",
    "User",
]
