"""환경 변수 기반 설정. pydantic-settings 사용."""

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """앱 설정. 환경변수에서 로드. 시크릿은 SecretStr로 마스킹, 필수 시크릿은 기본값 없음(Fail-fast)."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    sentry_dsn: SecretStr | None = None
    environment: str = "development"  # production, staging, development 등.

    # DB
    database_url: str | None = None
    db_connect_retries: int = Field(5, ge=1, le=20)  # 연결 실패 시 재시도 횟수.
    db_connect_retry_interval_sec: float = Field(2.0, ge=0.5, le=60.0)  # 재시도 간격(초).

    # Auth (필수: 기본값 없음 → 부팅 시점 Fail-fast)
    jwt_secret: SecretStr
    # PBKDF2 반복 횟수. 테스트에서는 낮춰서 사용.
    password_hash_iterations: int = Field(100_000, ge=1_000, le=10_000_000)
    session_ttl_days: int = Field(7, ge=1, le=90)  # Refresh 세션 TTL(일).
    password_reset_ttl_minutes: int = Field(30, ge=5, le=1440)  # 비밀번호 재설정 토큰 TTL(분).

    # Google OAuth
    google_client_id: str
    google_client_secret: SecretStr
    # 허용 redirect_uri 목록(쉼표 구분). 비어 있으면 검사 생략.
    google_redirect_uris: str = ""

    # Redis (세션 저장소)
    redis_url: str | None = None
    redis_socket_timeout: float = Field(5.0, ge=1.0, le=60.0)
    redis_socket_connect_timeout: float = Field(2.0, ge=0.5, le=30.0)
    redis_max_connections: int = Field(20, ge=1, le=100)

    # CORS
    allowed_origins: str = ""

    @property
    def is_production(self) -> bool:
        return (self.environment or "").strip().lower() == "production"

    @model_validator(mode="after")
    def fail_fast_production(self: "Settings") -> "Settings":
        """프로덕션 환경 시 필수 변수 누락이면 부팅 거부(Fail-Fast)."""
        if not self.is_production:
            return self
        missing: list[str] = []
        if not (self.database_url or "").strip():
            missing.append("DATABASE_URL")
        if not (self.redis_url or "").strip():
            missing.append("REDIS_URL")
        if not (self.jwt_secret.get_secret_value() or "").strip():
            missing.append("JWT_SECRET")
        if not (self.google_client_id or "").strip():
            missing.append("GOOGLE_CLIENT_ID")
        if not (self.google_client_secret.get_secret_value() or "").strip():
            missing.append("GOOGLE_CLIENT_SECRET")
        if missing:
            raise ValueError(
                f"Production environment requires these variables to be set: {', '.join(missing)}. "
                "Set them in Secret Manager or environment before boot."
            )
        return self


settings = Settings()
