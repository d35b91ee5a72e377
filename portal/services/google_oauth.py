"""Google OAuth 어댑터. code → 토큰 교환, id_token JWKS 검증, 제공자 프로필 추출."""

import logging
from typing import Any

import httpx
import jwt
from pydantic import ValidationError
from pyjwt_key_fetcher import AsyncKeyFetcher

from portal.core.config import settings
from portal.schemas.oauth import GoogleTokenResponse, ProviderProfile, ProviderTokens

logger = logging.getLogger(__name__)

GOOGLE_PROVIDER = "google"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_ISSUERS = ["https://accounts.google.com"]


class GoogleAuthError(Exception):
    """Google 교환/검증 실패. Router에서 400으로 변환."""

    pass


def allowed_redirect_uris() -> set[str]:
    """설정된 허용 redirect_uri 목록(쉼표 구분). 비어 있으면 빈 set(검사 생략)."""
    raw = (settings.google_redirect_uris or "").strip()
    if not raw:
        return set()
    return {u.strip() for u in raw.split(",") if u.strip()}


def check_redirect_uri(redirect_uri: str | None) -> None:
    allowed = allowed_redirect_uris()
    if allowed and redirect_uri is not None and redirect_uri.strip() not in allowed:
        raise GoogleAuthError("redirect_uri not allowed")


async def exchange_google_code(
    code: str,
    redirect_uri: str | None,
    client: httpx.AsyncClient,
) -> GoogleTokenResponse:
    """
    Authorization Code → 토큰 교환. Pydantic 스키마로 검증.
    네트워크 예외(Timeout, Connect)도 GoogleAuthError로 변환(500 전파 방지).
    """
    try:
        resp = await client.post(
            GOOGLE_TOKEN_URL,
            data={
                "code": code,
                "client_id": settings.google_client_id,
                "client_secret": settings.google_client_secret.get_secret_value(),
                "redirect_uri": redirect_uri or "http://localhost",
                "grant_type": "authorization_code",
            },
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
    except (
        httpx.TimeoutException,
        httpx.ConnectError,
        httpx.RemoteProtocolError,
    ) as e:
        logger.warning("Google token exchange network error: %s", e, exc_info=True)
        raise GoogleAuthError("Google auth temporarily unavailable") from e
    if resp.status_code != 200:
        logger.warning("Google token exchange failed: %s %s", resp.status_code, resp.text)
        raise GoogleAuthError("Invalid or expired authorization code")

    try:
        return GoogleTokenResponse.model_validate(resp.json())
    except (ValidationError, ValueError) as e:
        raise GoogleAuthError("Invalid Google token response") from e


async def decode_google_id_token(
    id_token: str, key_fetcher: AsyncKeyFetcher
) -> dict[str, Any]:
    """id_token 서명(JWKS)·aud·exp 검증 후 claims. key_fetcher는 lifespan 싱글톤."""
    try:
        key_entry = await key_fetcher.get_key(id_token)
        return jwt.decode(
            jwt=id_token,
            audience=settings.google_client_id,
            options={"verify_exp": True, "verify_aud": True},
            **key_entry,
        )
    except jwt.InvalidTokenError as e:
        logger.warning("Invalid Google id_token: %s", e)
        raise GoogleAuthError("Invalid id_token") from e


def google_profile_from_claims(claims: dict[str, Any]) -> ProviderProfile:
    """sub·email 필수. name 없으면 email 앞부분."""
    subject = str(claims.get("sub") or "").strip()
    if not subject:
        raise GoogleAuthError("Invalid id_token: missing sub")
    email = str(claims.get("email") or "").strip()
    if not email:
        raise GoogleAuthError("Invalid id_token: missing email")
    name = str(claims.get("name") or "").strip() or email.split("@")[0]
    return ProviderProfile(
        provider=GOOGLE_PROVIDER,
        subject_id=subject,
        email=email,
        name=name,
        email_verified=claims.get("email_verified"),
        picture=claims.get("picture"),
    )


async def fetch_google_identity(
    code: str,
    redirect_uri: str | None,
    *,
    http_client: httpx.AsyncClient,
    key_fetcher: AsyncKeyFetcher,
) -> tuple[ProviderProfile, ProviderTokens]:
    """redirect_uri 허용 목록 검사 → code 교환 → id_token 검증 → (프로필, 제공자 토큰)."""
    check_redirect_uri(redirect_uri)
    token_data = await exchange_google_code(code, redirect_uri, http_client)
    claims = await decode_google_id_token(token_data.id_token, key_fetcher)
    return google_profile_from_claims(claims), token_data.to_provider_tokens()
