"""OAuth API. 구글 로그인, 로그인 유저의 제공자 계정 연결·해제·조회."""

import logging

import httpx
from fastapi import APIRouter, Depends, HTTPException, Response
from pyjwt_key_fetcher import AsyncKeyFetcher

from portal.core.deps import (
    get_auth_service,
    get_current_user,
    get_google_key_fetcher,
    get_httpx_client,
    get_oauth_service,
)
from portal.models.oauth_account import OAuthAccount
from portal.models.user import User
from portal.schemas.auth import LoginResponse
from portal.schemas.oauth import GoogleCodePayload, OAuthAccountResponse
from portal.schemas.user import UserResponse
from portal.services.auth_service import AuthService
from portal.services.google_oauth import (
    GOOGLE_PROVIDER,
    GoogleAuthError,
    fetch_google_identity,
)
from portal.services.oauth_service import OAuthService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/oauth", tags=["oauth"])


@router.post("/google", response_model=LoginResponse)
async def post_google_login(
    payload: GoogleCodePayload,
    http_client: httpx.AsyncClient = Depends(get_httpx_client),
    key_fetcher: AsyncKeyFetcher = Depends(get_google_key_fetcher),
    auth_service: AuthService = Depends(get_auth_service),
    oauth_service: OAuthService = Depends(get_oauth_service),
) -> LoginResponse:
    """
    구글 OAuth Authorization Code로 로그인.
    code 교환·id_token 검증 후 로컬 유저 조회/생성/연결, Refresh 세션 저장 후 토큰 반환.
    """
    try:
        profile, provider_tokens = await fetch_google_identity(
            payload.code,
            payload.redirect_uri,
            http_client=http_client,
            key_fetcher=key_fetcher,
        )
    except GoogleAuthError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    result = await oauth_service.handle_provider_callback(profile, provider_tokens)
    await auth_service.sessions.create(
        result.user.id, result.tokens.refresh_token, auth_service.session_ttl
    )
    if result.is_new_user:
        logger.info("Provisioned user %s via %s", result.user.id, GOOGLE_PROVIDER)
    return LoginResponse(
        access_token=result.tokens.access_token,
        refresh_token=result.tokens.refresh_token,
        user=UserResponse.model_validate(result.user),
    )


@router.post("/google/link", response_model=OAuthAccountResponse, status_code=201)
async def post_google_link(
    payload: GoogleCodePayload,
    user: User = Depends(get_current_user),
    http_client: httpx.AsyncClient = Depends(get_httpx_client),
    key_fetcher: AsyncKeyFetcher = Depends(get_google_key_fetcher),
    oauth_service: OAuthService = Depends(get_oauth_service),
) -> OAuthAccount:
    """로그인한 유저 계정에 구글 계정 명시 연결."""
    try:
        profile, provider_tokens = await fetch_google_identity(
            payload.code,
            payload.redirect_uri,
            http_client=http_client,
            key_fetcher=key_fetcher,
        )
    except GoogleAuthError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return await oauth_service.link_oauth_account(
        user.id, GOOGLE_PROVIDER, profile, provider_tokens
    )


@router.get("/accounts", response_model=list[OAuthAccountResponse])
async def get_accounts(
    user: User = Depends(get_current_user),
    oauth_service: OAuthService = Depends(get_oauth_service),
) -> list[OAuthAccount]:
    return await oauth_service.get_user_oauth_accounts(user.id)


@router.delete("/{provider}", status_code=204)
async def delete_provider(
    provider: str,
    user: User = Depends(get_current_user),
    oauth_service: OAuthService = Depends(get_oauth_service),
) -> Response:
    """연결 해제. 비밀번호 없는 계정의 마지막 제공자는 400."""
    await oauth_service.unlink_oauth_account(user.id, provider)
    return Response(status_code=204)
