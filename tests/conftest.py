"""Pytest fixtures. 외부 DB/Redis 없이 실행: SQLite 인메모리 + 인메모리 Redis 대역."""

from __future__ import annotations

import fnmatch
import os
import time

import pytest
from fastapi.testclient import TestClient

# CI에서 DATABASE_URL이 주입돼도 테스트는 SQLite로 교체하므로 빈 문자열로 고정.
os.environ["DATABASE_URL"] = ""
os.environ["REDIS_URL"] = ""
# Settings Fail-fast 대비: 테스트 시 필수 Auth env 설정
os.environ.setdefault("JWT_SECRET", "test-jwt-secret-for-pytest")
os.environ.setdefault("GOOGLE_CLIENT_ID", "test-google-client-id")
os.environ.setdefault("GOOGLE_CLIENT_SECRET", "test-google-client-secret")
# PBKDF2 반복을 낮춰 테스트 속도 확보
os.environ["PASSWORD_HASH_ITERATIONS"] = "1000"

from sqlalchemy.ext.asyncio import create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from portal.core.database import override_db_for_testing  # noqa: E402
from portal.models import Base  # noqa: E402
from portal.repositories.session_repository import SessionStore  # noqa: E402
from portal.services.auth_service import AuthService  # noqa: E402
from portal.services.oauth_service import OAuthService  # noqa: E402


class FakeRedis:
    """
    redis.asyncio.Redis(decode_responses=True) 중 SessionStore가 쓰는 명령만 흉내.
    만료는 self.now 기준. advance()로 시간 이동.
    """

    def __init__(self) -> None:
        self.now = time.monotonic()
        self._data: dict[str, object] = {}
        self._expires: dict[str, float] = {}

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def _alive(self, key: str) -> bool:
        expires = self._expires.get(key)
        if expires is not None and expires <= self.now:
            self._data.pop(key, None)
            self._expires.pop(key, None)
        return key in self._data

    async def set(self, key: str, value: str, ex: int | None = None) -> bool:
        self._data[key] = str(value)
        self._expires.pop(key, None)
        if ex is not None:
            self._expires[key] = self.now + ex
        return True

    async def get(self, key: str) -> str | None:
        if not self._alive(key):
            return None
        value = self._data[key]
        return value if isinstance(value, str) else None

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self._alive(key):
                removed += 1
            self._data.pop(key, None)
            self._expires.pop(key, None)
        return removed

    async def exists(self, *keys: str) -> int:
        return sum(1 for key in keys if self._alive(key))

    async def ttl(self, key: str) -> int:
        if not self._alive(key):
            return -2
        expires = self._expires.get(key)
        if expires is None:
            return -1
        return max(0, int(expires - self.now))

    async def expire(self, key: str, seconds: int) -> bool:
        if not self._alive(key):
            return False
        self._expires[key] = self.now + seconds
        return True

    async def sadd(self, key: str, *members: str) -> int:
        current = self._data.get(key) if self._alive(key) else None
        members_set = current if isinstance(current, set) else set()
        before = len(members_set)
        members_set.update(members)
        self._data[key] = members_set
        return len(members_set) - before

    async def srem(self, key: str, *members: str) -> int:
        if not self._alive(key):
            return 0
        members_set = self._data[key]
        removed = 0
        for member in members:
            if member in members_set:
                members_set.discard(member)
                removed += 1
        if not members_set:
            await self.delete(key)
        return removed

    async def smembers(self, key: str) -> set[str]:
        if not self._alive(key):
            return set()
        return set(self._data[key])

    async def scan_iter(self, match: str | None = None):
        for key in list(self._data):
            if self._alive(key) and (match is None or fnmatch.fnmatchcase(key, match)):
                yield key

    async def ping(self) -> bool:
        return True

    async def aclose(self) -> None:
        return None


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def session_store(fake_redis: FakeRedis) -> SessionStore:
    return SessionStore(fake_redis)


@pytest.fixture
async def db_engine():
    """SQLite 인메모리 엔진을 Holder에 주입. 테스트마다 새 스키마."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    override_db_for_testing(engine)
    yield engine
    override_db_for_testing(None)
    await engine.dispose()


@pytest.fixture
def auth_service(db_engine, session_store: SessionStore) -> AuthService:
    return AuthService(session_store)


@pytest.fixture
def oauth_service(db_engine) -> OAuthService:
    return OAuthService()


@pytest.fixture
def client() -> TestClient:
    """FastAPI TestClient. DB·Redis 없이 /health 등 테스트용(lifespan 미실행)."""
    from portal.main import app

    return TestClient(app)
