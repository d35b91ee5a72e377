"""FastAPI 의존성. HTTP 클라이언트·Google Key Fetcher·세션 저장소 등 앱 생명주기 객체 주입, 인증 유저 해석."""

import logging
from collections.abc import Awaitable, Callable

import httpx
from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pyjwt_key_fetcher import AsyncKeyFetcher

from portal.core.errors import ForbiddenError, TokenInvalidError, UnauthorizedError
from portal.models.user import User, UserRole
from portal.repositories.session_repository import SessionStore
from portal.services.auth_service import AuthService
from portal.services.oauth_service import OAuthService

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def get_httpx_client(request: Request) -> httpx.AsyncClient:
    """
    앱 lifespan에서 생성한 싱글톤 AsyncClient 반환.
    매 요청마다 새 클라이언트를 만들지 않아 소켓 고갈(TIME_WAIT) 방지.
    """
    return request.app.state.httpx_client


def get_google_key_fetcher(request: Request) -> AsyncKeyFetcher:
    """앱 lifespan에서 생성한 Google JWKS AsyncKeyFetcher 싱글톤."""
    return request.app.state.google_key_fetcher


def get_session_store(request: Request) -> SessionStore:
    """lifespan에서 만든 SessionStore. Redis 미설정이면 503."""
    store = getattr(request.app.state, "session_store", None)
    if store is None:
        raise HTTPException(status_code=503, detail="Session store unavailable")
    return store


def get_auth_service(store: SessionStore = Depends(get_session_store)) -> AuthService:
    return AuthService(store)


def get_oauth_service() -> OAuthService:
    return OAuthService()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    auth_service: AuthService = Depends(get_auth_service),
) -> User:
    """Authorization Bearer의 Access JWT 검증 후 유저 반환. 만료/위조는 응답에서 구분하지 않는다."""
    if not credentials:
        raise UnauthorizedError("Missing or invalid Authorization")
    try:
        return await auth_service.verify_token(credentials.credentials)
    except TokenInvalidError as e:
        kind = getattr(e.__cause__, "code", "TOKEN_INVALID")
        logger.warning("Rejected access token (%s)", kind)
        raise


def require_role(*roles: UserRole) -> Callable[..., Awaitable[User]]:
    """지정 역할만 통과. 그 외 403."""
    allowed = {str(r) for r in roles}

    async def _dependency(user: User = Depends(get_current_user)) -> User:
        if user.role not in allowed:
            raise ForbiddenError("Insufficient role")
        return user

    return _dependency
