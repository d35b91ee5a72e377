# ORM models
from portal.models.base import Base
from portal.models.oauth_account import OAuthAccount
from portal.models.user import User, UserRole

__all__ = [
    "Base",
    "OAuthAccount",
    "User",
    "UserRole",
]
