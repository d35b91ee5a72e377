"""OAuth 관련 Pydantic 스키마. 제공자 프로필·토큰, Google 토큰 교환 응답, 계정 연결 응답."""

from datetime import UTC, datetime, timedelta

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_OAUTH_SCOPE = "openid profile email"


class ProviderProfile(BaseModel):
    """
    제공자에서 받은 유저 프로필. subject_id는 제공자 측 안정 식별자(Google sub).
    email_verified는 보관만 하고 콜백 처리에서 검사하지 않는다(DESIGN.md 참고).
    """

    provider: str = Field(..., min_length=1, max_length=50)
    subject_id: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., min_length=3, max_length=255)
    name: str = Field(..., min_length=1, max_length=255)
    email_verified: bool | None = None
    picture: str | None = None


class ProviderTokens(BaseModel):
    """제공자 토큰 자료. expires_in(초)은 저장 시 expires_at으로 변환."""

    access_token: str
    refresh_token: str | None = None
    id_token: str | None = None
    expires_in: int | None = None
    scope: str | None = None

    def expires_at(self, now: datetime | None = None) -> datetime | None:
        if not self.expires_in:
            return None
        return (now or datetime.now(UTC)) + timedelta(seconds=self.expires_in)


class GoogleTokenResponse(BaseModel):
    """구글 OAuth 토큰 교환 응답. model_validate로 검증."""

    id_token: str
    access_token: str
    token_type: str = "Bearer"
    expires_in: int | None = None
    scope: str | None = None
    refresh_token: str | None = None

    def to_provider_tokens(self) -> ProviderTokens:
        return ProviderTokens(
            access_token=self.access_token,
            refresh_token=self.refresh_token,
            id_token=self.id_token,
            expires_in=self.expires_in,
            scope=self.scope,
        )


class GoogleCodePayload(BaseModel):
    """OAuth code 교환 요청. code/redirect_uri 길이 제약. 알 수 없는 필드 거부."""

    model_config = ConfigDict(extra="forbid")

    code: str = Field(
        ...,
        min_length=1,
        max_length=2000,
        description="구글 OAuth Authorization Code",
    )
    redirect_uri: str | None = Field(
        None,
        max_length=2048,
        description="OAuth redirect_uri (허용 목록과 일치해야 함)",
    )


class OAuthAccountResponse(BaseModel):
    """연결된 제공자 계정. 토큰 자료는 응답에서 제외."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    provider: str
    provider_account_id: str
    expires_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
