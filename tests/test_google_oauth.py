"""Google 어댑터 단위 테스트. 네트워크/JWKS 호출은 mock."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import jwt
import pytest

from portal.services.google_oauth import (
    GoogleAuthError,
    check_redirect_uri,
    decode_google_id_token,
    exchange_google_code,
    fetch_google_identity,
    google_profile_from_claims,
)


def _response(status_code: int, payload: dict | None = None) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status_code
    resp.text = "body"
    resp.json.return_value = payload or {}
    return resp


async def test_exchange_google_code_success() -> None:
    client = AsyncMock()
    client.post = AsyncMock(
        return_value=_response(
            200,
            {"id_token": "id.jwt", "access_token": "ya29", "expires_in": 3599, "scope": "openid"},
        )
    )
    result = await exchange_google_code("code", "https://portal.example/cb", client)
    assert result.id_token == "id.jwt"
    assert result.to_provider_tokens().expires_in == 3599
    assert client.post.await_args.kwargs["data"]["grant_type"] == "authorization_code"


async def test_exchange_google_code_non_200() -> None:
    client = AsyncMock()
    client.post = AsyncMock(return_value=_response(400))
    with pytest.raises(GoogleAuthError):
        await exchange_google_code("bad", None, client)


async def test_exchange_google_code_network_error() -> None:
    client = AsyncMock()
    client.post = AsyncMock(side_effect=httpx.ConnectError("boom"))
    with pytest.raises(GoogleAuthError):
        await exchange_google_code("code", None, client)


async def test_exchange_google_code_invalid_body() -> None:
    """id_token 누락 응답은 스키마 검증 실패."""
    client = AsyncMock()
    client.post = AsyncMock(return_value=_response(200, {"access_token": "ya29"}))
    with pytest.raises(GoogleAuthError):
        await exchange_google_code("code", None, client)


async def test_decode_google_id_token_valid() -> None:
    """key_fetcher.get_key + jwt.decode mock 시 claims 반환."""
    mock_fetcher = AsyncMock()
    mock_fetcher.get_key = AsyncMock(return_value={"key": "dummy-key-for-test"})
    with patch(
        "portal.services.google_oauth.jwt.decode",
        return_value={"sub": "123", "email": "a@b.com", "name": "Test"},
    ) as decode:
        result = await decode_google_id_token("fake-id-token", mock_fetcher)
    assert result["sub"] == "123"
    assert decode.call_args.kwargs["audience"] == "test-google-client-id"


async def test_decode_google_id_token_invalid() -> None:
    mock_fetcher = AsyncMock()
    mock_fetcher.get_key = AsyncMock(return_value={"key": "dummy-key-for-test"})
    with patch(
        "portal.services.google_oauth.jwt.decode",
        side_effect=jwt.InvalidAudienceError("aud"),
    ):
        with pytest.raises(GoogleAuthError):
            await decode_google_id_token("fake-id-token", mock_fetcher)


def test_profile_from_claims() -> None:
    profile = google_profile_from_claims(
        {"sub": "123", "email": "kim@gmail.com", "email_verified": True}
    )
    assert profile.provider == "google"
    assert profile.subject_id == "123"
    assert profile.name == "kim"
    assert profile.email_verified is True


@pytest.mark.parametrize(
    "claims",
    [{"email": "a@b.com"}, {"sub": "", "email": "a@b.com"}, {"sub": "123"}],
)
def test_profile_from_claims_requires_sub_and_email(claims: dict) -> None:
    with pytest.raises(GoogleAuthError):
        google_profile_from_claims(claims)


def test_redirect_uri_allowlist(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        "portal.services.google_oauth.settings.google_redirect_uris",
        "https://portal.example/cb, https://localhost:3000/cb",
    )
    check_redirect_uri("https://portal.example/cb")
    check_redirect_uri(None)
    with pytest.raises(GoogleAuthError):
        check_redirect_uri("https://evil.example/cb")


def test_redirect_uri_check_skipped_without_allowlist() -> None:
    check_redirect_uri("https://anything.example/cb")


async def test_fetch_google_identity_chains_steps() -> None:
    client = AsyncMock()
    client.post = AsyncMock(
        return_value=_response(200, {"id_token": "id.jwt", "access_token": "ya29"})
    )
    fetcher = AsyncMock()
    fetcher.get_key = AsyncMock(return_value={"key": "k"})
    with patch(
        "portal.services.google_oauth.jwt.decode",
        return_value={"sub": "s-1", "email": "a@b.com", "name": "A"},
    ):
        profile, tokens = await fetch_google_identity(
            "code", None, http_client=client, key_fetcher=fetcher
        )
    assert profile.subject_id == "s-1"
    assert tokens.access_token == "ya29"
    assert tokens.id_token == "id.jwt"
