"""User 관련 Pydantic 스키마."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from portal.models.user import UserRole


def normalize_email(email: str) -> str:
    """조회·저장 공통 정규화. 소문자 + 앞뒤 공백 제거."""
    return email.strip().lower()


class UserCreate(BaseModel):
    """회원가입 입력. password는 평문(서비스에서 해시). None이면 비밀번호 없는 계정."""

    model_config = ConfigDict(extra="forbid")

    email: str = Field(..., min_length=3, max_length=255)
    password: str | None = Field(None, min_length=1, max_length=128)
    name: str = Field(..., min_length=1, max_length=255)
    role: UserRole = UserRole.STUDENT

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, v: str) -> str:
        v = normalize_email(v)
        if "@" not in v:
            raise ValueError("Invalid email format")
        return v

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
        return v


class UserResponse(BaseModel):
    """User 응답. password_hash는 노출하지 않고 has_password만."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    name: str
    role: UserRole
    suspended: bool
    has_password: bool
    created_at: datetime
    updated_at: datetime
