# Pydantic schemas
from portal.schemas.auth import (
    LoginResponse,
    RefreshTokenPayload,
    TokenPair,
    TokenResponse,
)
from portal.schemas.oauth import (
    GoogleCodePayload,
    GoogleTokenResponse,
    OAuthAccountResponse,
    ProviderProfile,
    ProviderTokens,
)
from portal.schemas.user import UserCreate, UserResponse, normalize_email

__all__ = [
    "GoogleCodePayload",
    "GoogleTokenResponse",
    "LoginResponse",
    "OAuthAccountResponse",
    "ProviderProfile",
    "ProviderTokens",
    "RefreshTokenPayload",
    "TokenPair",
    "TokenResponse",
    "UserCreate",
    "UserResponse",
    "normalize_email",
]
