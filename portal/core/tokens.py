"""
토큰 발급/검증. Access = HS256 JWT {userId, role, iat, exp}, 15분 고정.
Refresh/Reset = 256bit 랜덤 hex. claim 없음, 유효성은 세션 저장소 조회로만 판단.
"""

import secrets
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import jwt

from portal.core.config import settings
from portal.core.errors import TokenExpiredError, TokenInvalidError

ALGORITHM = "HS256"
ACCESS_TOKEN_TTL_SECONDS = 15 * 60
REFRESH_TOKEN_BYTES = 32


@dataclass(frozen=True)
class TokenPayload:
    user_id: str
    role: str
    iat: int
    exp: int


def _secret() -> str:
    secret = settings.jwt_secret.get_secret_value()
    if not secret:
        raise RuntimeError("JWT_SECRET not configured")
    return secret


def _sign(user_id: str, role: str, expires_in: timedelta) -> str:
    if not isinstance(user_id, str) or not user_id:
        raise ValueError("user_id must be a non-empty string")
    if not isinstance(role, str) or not role:
        raise ValueError("role must be a non-empty string")
    now = datetime.now(UTC)
    payload = {
        "userId": user_id,
        "role": role,
        "iat": now,
        "exp": now + expires_in,
    }
    return jwt.encode(payload, _secret(), algorithm=ALGORITHM)


def generate_access_token(user_id: str, role: str) -> str:
    return _sign(user_id, role, timedelta(seconds=ACCESS_TOKEN_TTL_SECONDS))


def generate_custom_token(user_id: str, role: str, expires_in: timedelta) -> str:
    """만료 시간 지정 발급. 테스트·운영 도구용(음수면 이미 만료된 토큰)."""
    return _sign(user_id, role, expires_in)


def verify_access_token(token: str) -> TokenPayload:
    """
    서명·만료·알고리즘·payload 형태 검증.
    만료는 TokenExpiredError, 그 외(서명 불일치, 형식 오류, alg 불일치)는 TokenInvalidError.
    외부 응답에서는 둘을 구분하지 않는다.
    """
    if not isinstance(token, str) or not token:
        raise TokenInvalidError("Token must be a non-empty string")
    try:
        decoded = jwt.decode(
            token,
            _secret(),
            algorithms=[ALGORITHM],
            options={"require": ["exp", "iat"]},
        )
    except jwt.ExpiredSignatureError as e:
        raise TokenExpiredError("Token has expired") from e
    except jwt.InvalidTokenError as e:
        raise TokenInvalidError(f"Invalid token: {e}") from e

    user_id = decoded.get("userId")
    role = decoded.get("role")
    if not isinstance(user_id, str) or not isinstance(role, str):
        raise TokenInvalidError("Invalid token payload")
    return TokenPayload(
        user_id=user_id,
        role=role,
        iat=int(decoded["iat"]),
        exp=int(decoded["exp"]),
    )


def generate_refresh_token() -> str:
    """Opaque refresh/reset 토큰. 32 bytes → 64 hex chars."""
    return secrets.token_hex(REFRESH_TOKEN_BYTES)
