"""Auth API. 이메일/비밀번호 로그인 + Access JWT / Refresh 세션."""

from fastapi import APIRouter, Depends, Response

from portal.core.deps import get_auth_service, get_current_user
from portal.models.user import User, UserRole
from portal.schemas.auth import (
    ChangePasswordPayload,
    LoginPayload,
    LoginResponse,
    LogoutPayload,
    PasswordResetConfirmPayload,
    PasswordResetRequestPayload,
    PasswordResetRequestResponse,
    RefreshTokenPayload,
    RegisterPayload,
    RevokeSessionsResponse,
    SessionSummary,
    TokenResponse,
)
from portal.schemas.user import UserCreate, UserResponse
from portal.services.auth_service import AuthService

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=UserResponse, status_code=201)
async def post_register(
    payload: RegisterPayload,
    auth_service: AuthService = Depends(get_auth_service),
) -> User:
    """회원가입. 세션은 만들지 않는다(이후 /login)."""
    candidate = UserCreate(
        email=payload.email,
        password=payload.password,
        name=payload.name,
        role=UserRole(payload.role),
    )
    return await auth_service.register(candidate)


@router.post("/login", response_model=LoginResponse)
async def post_login(
    payload: LoginPayload,
    auth_service: AuthService = Depends(get_auth_service),
) -> LoginResponse:
    result = await auth_service.login(payload.email, payload.password)
    return LoginResponse(
        access_token=result.tokens.access_token,
        refresh_token=result.tokens.refresh_token,
        user=UserResponse.model_validate(result.user),
    )


@router.post("/logout", status_code=204)
async def post_logout(
    payload: LogoutPayload,
    auth_service: AuthService = Depends(get_auth_service),
) -> Response:
    """Refresh 세션 삭제. 이미 없는 토큰도 204."""
    await auth_service.logout(payload.refresh_token)
    return Response(status_code=204)


@router.post("/refresh", response_model=TokenResponse)
async def post_refresh(
    payload: RefreshTokenPayload,
    auth_service: AuthService = Depends(get_auth_service),
) -> TokenResponse:
    """
    Refresh token으로 Access 재발급. rotate=True(기본)면 Refresh도 교체되어
    이전 토큰은 즉시 무효.
    """
    tokens = await auth_service.refresh_access_token(
        payload.refresh_token, rotate=payload.rotate
    )
    return TokenResponse(
        access_token=tokens.access_token, refresh_token=tokens.refresh_token
    )


@router.get("/me", response_model=UserResponse)
async def get_me(user: User = Depends(get_current_user)) -> User:
    return user


@router.post("/password", status_code=204)
async def post_change_password(
    payload: ChangePasswordPayload,
    user: User = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
) -> Response:
    await auth_service.change_password(
        user.id,
        payload.current_password,
        payload.new_password,
        revoke_all_sessions=payload.revoke_all_sessions,
    )
    return Response(status_code=204)


@router.post("/password-reset/request", response_model=PasswordResetRequestResponse)
async def post_password_reset_request(
    payload: PasswordResetRequestPayload,
    auth_service: AuthService = Depends(get_auth_service),
) -> PasswordResetRequestResponse:
    """재설정 토큰 발급. 메일 발송은 이 서비스 밖에서 처리한다."""
    token = await auth_service.request_password_reset(payload.email)
    return PasswordResetRequestResponse(
        reset_token=token, expires_in=auth_service.reset_ttl
    )


@router.post("/password-reset/confirm", status_code=204)
async def post_password_reset_confirm(
    payload: PasswordResetConfirmPayload,
    auth_service: AuthService = Depends(get_auth_service),
) -> Response:
    await auth_service.reset_password(payload.reset_token, payload.new_password)
    return Response(status_code=204)


@router.get("/sessions", response_model=SessionSummary)
async def get_sessions(
    user: User = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
) -> SessionSummary:
    """활성 세션 수만 노출. 토큰 값 자체는 응답하지 않는다."""
    return SessionSummary(count=await auth_service.get_session_count(user.id))


@router.delete("/sessions", response_model=RevokeSessionsResponse)
async def delete_sessions(
    user: User = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
) -> RevokeSessionsResponse:
    """전체 로그아웃."""
    return RevokeSessionsResponse(
        revoked=await auth_service.revoke_all_sessions(user.id)
    )
