"""Auth 요청/응답 Pydantic 스키마. 요청 바디는 extra='forbid'로 페이로드 오염 방지."""

from pydantic import BaseModel, ConfigDict, Field, field_validator

from portal.core.tokens import ACCESS_TOKEN_TTL_SECONDS
from portal.schemas.user import UserResponse, normalize_email


class TokenPair(BaseModel):
    access_token: str
    refresh_token: str


class TokenResponse(TokenPair):
    """토큰 응답 (응답 body JSON 방식)."""

    token_type: str = "bearer"
    expires_in: int = Field(ACCESS_TOKEN_TTL_SECONDS, description="Access token 만료 시간(초)")


class LoginResponse(TokenResponse):
    user: UserResponse


class RegisterPayload(BaseModel):
    model_config = ConfigDict(extra="forbid")

    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=8, max_length=128)
    name: str = Field(..., min_length=1, max_length=255)
    role: str = Field("student", pattern="^(admin|teacher|student)$")

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, v: str) -> str:
        v = normalize_email(v)
        if "@" not in v or len(v) < 3:
            raise ValueError("Invalid email format")
        return v

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
        return v


class LoginPayload(BaseModel):
    model_config = ConfigDict(extra="forbid")

    email: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1, max_length=128)


class RefreshTokenPayload(BaseModel):
    """Refresh token으로 재발급 요청. rotate 기본 True(재사용 탐지 용이)."""

    model_config = ConfigDict(extra="forbid")

    refresh_token: str = Field(..., min_length=1)
    rotate: bool = True


class LogoutPayload(BaseModel):
    model_config = ConfigDict(extra="forbid")

    refresh_token: str = Field(..., min_length=1)


class ChangePasswordPayload(BaseModel):
    model_config = ConfigDict(extra="forbid")

    current_password: str = Field(..., min_length=1, max_length=128)
    new_password: str = Field(..., min_length=8, max_length=128)
    revoke_all_sessions: bool = True


class PasswordResetRequestPayload(BaseModel):
    model_config = ConfigDict(extra="forbid")

    email: str = Field(..., min_length=3, max_length=255)


class PasswordResetRequestResponse(BaseModel):
    # 메일 발송은 외부 협력자 담당. 여기서는 토큰을 그대로 돌려준다.
    reset_token: str
    expires_in: int


class PasswordResetConfirmPayload(BaseModel):
    model_config = ConfigDict(extra="forbid")

    reset_token: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8, max_length=128)


class SessionSummary(BaseModel):
    count: int


class RevokeSessionsResponse(BaseModel):
    revoked: int
