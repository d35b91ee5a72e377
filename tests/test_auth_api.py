"""HTTP 레이어 테스트. 같은 이벤트 루프에서 ASGITransport로 호출(lifespan 미실행, app.state 직접 주입)."""

from datetime import timedelta
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from portal.core.deps import get_google_key_fetcher, get_httpx_client, require_role
from portal.core.errors import ForbiddenError
from portal.core.tokens import generate_custom_token
from portal.main import app
from portal.models.user import User, UserRole
from portal.schemas.oauth import ProviderProfile, ProviderTokens
from portal.services.google_oauth import GoogleAuthError


@pytest.fixture
async def api(db_engine, session_store):
    app.state.session_store = session_store
    app.dependency_overrides[get_httpx_client] = lambda: AsyncMock()
    app.dependency_overrides[get_google_key_fetcher] = lambda: AsyncMock()
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
    app.state.session_store = None


async def _register_and_login(api: httpx.AsyncClient, email: str = "a@x.com") -> dict:
    resp = await api.post(
        "/v1/auth/register",
        json={"email": email, "password": "P@ssw0rd1", "name": "Ann", "role": "student"},
    )
    assert resp.status_code == 201
    resp = await api.post("/v1/auth/login", json={"email": email, "password": "P@ssw0rd1"})
    assert resp.status_code == 200
    return resp.json()


def _bearer(tokens: dict) -> dict[str, str]:
    return {"Authorization": f"Bearer {tokens['access_token']}"}


async def test_register_login_me(api: httpx.AsyncClient) -> None:
    tokens = await _register_and_login(api)
    assert tokens["token_type"] == "bearer"
    assert tokens["expires_in"] == 900
    assert tokens["user"]["role"] == "student"
    assert "password_hash" not in tokens["user"]

    resp = await api.get("/v1/auth/me", headers=_bearer(tokens))
    assert resp.status_code == 200
    assert resp.json()["email"] == "a@x.com"
    assert resp.json()["has_password"] is True


async def test_register_duplicate_is_409(api: httpx.AsyncClient) -> None:
    await _register_and_login(api)
    resp = await api.post(
        "/v1/auth/register",
        json={"email": "A@x.com", "password": "P@ssw0rd1", "name": "Ann"},
    )
    assert resp.status_code == 409
    assert resp.json()["code"] == "ALREADY_EXISTS"


async def test_register_rejects_bad_input(api: httpx.AsyncClient) -> None:
    resp = await api.post(
        "/v1/auth/register",
        json={"email": "no-at-sign", "password": "P@ssw0rd1", "name": "Ann"},
    )
    assert resp.status_code == 422
    resp = await api.post(
        "/v1/auth/register",
        json={"email": "a@x.com", "password": "short", "name": "Ann"},
    )
    assert resp.status_code == 422
    resp = await api.post(
        "/v1/auth/register",
        json={"email": "a@x.com", "password": "P@ssw0rd1", "name": "Ann", "role": "root"},
    )
    assert resp.status_code == 422
    # 정규화 후 규칙 위반도 500이 아닌 JSON 422
    for body in (
        {"email": "a@x.com", "password": "P@ssw0rd1", "name": "   "},
        {"email": "  @  ", "password": "P@ssw0rd1", "name": "Ann"},
    ):
        resp = await api.post("/v1/auth/register", json=body)
        assert resp.status_code == 422
        assert resp.json()["detail"]


async def test_login_wrong_password_is_401(api: httpx.AsyncClient) -> None:
    await _register_and_login(api)
    resp = await api.post("/v1/auth/login", json={"email": "a@x.com", "password": "nope"})
    assert resp.status_code == 401
    assert resp.json()["code"] == "INVALID_CREDENTIALS"


async def test_me_requires_valid_bearer(api: httpx.AsyncClient) -> None:
    assert (await api.get("/v1/auth/me")).status_code == 401
    resp = await api.get("/v1/auth/me", headers={"Authorization": "Bearer garbage"})
    assert resp.status_code == 401
    assert resp.json()["code"] == "TOKEN_INVALID"

    tokens = await _register_and_login(api)
    user_id = str(tokens["user"]["id"])
    expired = generate_custom_token(user_id, "student", timedelta(seconds=-1))
    resp = await api.get("/v1/auth/me", headers={"Authorization": f"Bearer {expired}"})
    assert resp.status_code == 401
    # 만료와 위조는 같은 응답
    assert resp.json()["code"] == "TOKEN_INVALID"


async def test_refresh_rotates_by_default(api: httpx.AsyncClient) -> None:
    tokens = await _register_and_login(api)
    resp = await api.post("/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert resp.status_code == 200
    rotated = resp.json()
    assert rotated["refresh_token"] != tokens["refresh_token"]

    resp = await api.post("/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert resp.status_code == 401

    resp = await api.post(
        "/v1/auth/refresh",
        json={"refresh_token": rotated["refresh_token"], "rotate": False},
    )
    assert resp.status_code == 200
    assert resp.json()["refresh_token"] == rotated["refresh_token"]


async def test_logout_then_refresh_is_401(api: httpx.AsyncClient) -> None:
    tokens = await _register_and_login(api)
    resp = await api.post("/v1/auth/logout", json={"refresh_token": tokens["refresh_token"]})
    assert resp.status_code == 204
    resp = await api.post("/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert resp.status_code == 401


async def test_sessions_count_and_revoke(api: httpx.AsyncClient) -> None:
    tokens = await _register_and_login(api)
    await api.post("/v1/auth/login", json={"email": "a@x.com", "password": "P@ssw0rd1"})

    resp = await api.get("/v1/auth/sessions", headers=_bearer(tokens))
    assert resp.json() == {"count": 2}
    resp = await api.delete("/v1/auth/sessions", headers=_bearer(tokens))
    assert resp.json() == {"revoked": 2}
    resp = await api.post("/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert resp.status_code == 401


async def test_change_password_and_reset(api: httpx.AsyncClient) -> None:
    tokens = await _register_and_login(api)
    resp = await api.post(
        "/v1/auth/password",
        headers=_bearer(tokens),
        json={"current_password": "P@ssw0rd1", "new_password": "N3wPassword!"},
    )
    assert resp.status_code == 204

    resp = await api.post("/v1/auth/password-reset/request", json={"email": "a@x.com"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["expires_in"] == 30 * 60

    resp = await api.post(
        "/v1/auth/password-reset/confirm",
        json={"reset_token": body["reset_token"], "new_password": "R3setPassword!"},
    )
    assert resp.status_code == 204
    resp = await api.post(
        "/v1/auth/login", json={"email": "a@x.com", "password": "R3setPassword!"}
    )
    assert resp.status_code == 200


async def test_session_routes_503_without_redis(api: httpx.AsyncClient) -> None:
    app.state.session_store = None
    resp = await api.post("/v1/auth/login", json={"email": "a@x.com", "password": "x"})
    assert resp.status_code == 503


async def test_google_login_creates_session(api: httpx.AsyncClient, session_store) -> None:
    identity = (
        ProviderProfile(provider="google", subject_id="g-1", email="kim@gmail.com", name="Kim"),
        ProviderTokens(access_token="ya29", id_token="id.jwt", expires_in=3600),
    )
    with patch(
        "portal.api.v1.oauth.fetch_google_identity", AsyncMock(return_value=identity)
    ):
        resp = await api.post("/v1/oauth/google", json={"code": "auth-code"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["user"]["email"] == "kim@gmail.com"
    assert body["user"]["has_password"] is False
    assert await session_store.get(body["refresh_token"]) is not None

    resp = await api.get("/v1/oauth/accounts", headers=_bearer(body))
    assert [a["provider"] for a in resp.json()] == ["google"]
    resp = await api.delete("/v1/oauth/google", headers=_bearer(body))
    assert resp.status_code == 400
    assert resp.json()["code"] == "INVALID_STATE"


async def test_google_login_bad_code_is_400(api: httpx.AsyncClient) -> None:
    with patch(
        "portal.api.v1.oauth.fetch_google_identity",
        AsyncMock(side_effect=GoogleAuthError("Invalid or expired authorization code")),
    ):
        resp = await api.post("/v1/oauth/google", json={"code": "bad"})
    assert resp.status_code == 400


async def test_google_login_refuses_password_holder(api: httpx.AsyncClient) -> None:
    await _register_and_login(api, email="kim@gmail.com")
    identity = (
        ProviderProfile(provider="google", subject_id="g-1", email="kim@gmail.com", name="Kim"),
        ProviderTokens(access_token="ya29"),
    )
    with patch(
        "portal.api.v1.oauth.fetch_google_identity", AsyncMock(return_value=identity)
    ):
        resp = await api.post("/v1/oauth/google", json={"code": "auth-code"})
    assert resp.status_code == 401
    assert resp.json()["code"] == "INVALID_CREDENTIALS"


async def test_google_link_for_logged_in_user(api: httpx.AsyncClient) -> None:
    tokens = await _register_and_login(api, email="kim@gmail.com")
    identity = (
        ProviderProfile(provider="google", subject_id="g-1", email="kim@gmail.com", name="Kim"),
        ProviderTokens(access_token="ya29"),
    )
    with patch(
        "portal.api.v1.oauth.fetch_google_identity", AsyncMock(return_value=identity)
    ):
        resp = await api.post(
            "/v1/oauth/google/link", headers=_bearer(tokens), json={"code": "auth-code"}
        )
    assert resp.status_code == 201
    assert resp.json()["provider_account_id"] == "g-1"
    assert "access_token" not in resp.json()


async def test_require_role() -> None:
    admin_only = require_role(UserRole.ADMIN, UserRole.TEACHER)
    teacher = User(email="t@x.com", name="T", role="teacher")
    assert await admin_only(user=teacher) is teacher
    with pytest.raises(ForbiddenError):
        await admin_only(user=User(email="s@x.com", name="S", role="student"))
