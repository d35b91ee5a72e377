"""
Session Store. Redis 기반 Refresh/Reset 토큰 → 소유자 매핑(TTL).

키 구조:
- {prefix}session:<token>        → user_id (SET EX)
- {prefix}user_sessions:<user_id> → 토큰 Set (유저별 인덱스)

유저별 인덱스로 "전체 로그아웃"이 전체 키스페이스 SCAN 없이 O(해당 유저 세션 수).
세션 키가 만료돼도 인덱스 멤버는 남으므로 조회 시 lazy prune.
명령 간 원자성 없음(MULTI 미사용). 회전(rotate) 경쟁 조건은 호출자가 감수하는 설계.
"""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

from portal.core.config import settings

DEFAULT_SESSION_TTL_SECONDS = 7 * 24 * 60 * 60


@dataclass(frozen=True)
class SessionRecord:
    user_id: str
    token: str
    expires_at: datetime
    # 저장소에는 소유자만 있으므로 기본 TTL 기준 추정치.
    created_at: datetime


class SessionStore:
    """client는 redis.asyncio.Redis(decode_responses=True). lifespan에서 생성해 주입."""

    def __init__(
        self,
        client: Any,
        *,
        key_prefix: str = "portal:",
        default_ttl: int = DEFAULT_SESSION_TTL_SECONDS,
    ) -> None:
        self._client = client
        self._session_prefix = f"{key_prefix}session:"
        self._index_prefix = f"{key_prefix}user_sessions:"
        self.default_ttl = default_ttl

    def _key(self, token: str) -> str:
        return f"{self._session_prefix}{token}"

    def _index_key(self, user_id: int | str) -> str:
        return f"{self._index_prefix}{user_id}"

    def _record(self, user_id: str, token: str, ttl: int) -> SessionRecord:
        expires_at = datetime.now(UTC) + timedelta(seconds=ttl)
        return SessionRecord(
            user_id=user_id,
            token=token,
            expires_at=expires_at,
            created_at=expires_at - timedelta(seconds=self.default_ttl),
        )

    async def _extend_index(self, user_id: int | str, ttl: int) -> None:
        """인덱스 TTL은 가장 오래 사는 세션 이상으로 유지. -1(무기한)/-2(없음)도 갱신."""
        index_key = self._index_key(user_id)
        current = await self._client.ttl(index_key)
        if current is None or current < ttl:
            await self._client.expire(index_key, ttl)

    async def create(
        self, user_id: int | str, token: str, ttl: int | None = None
    ) -> SessionRecord:
        ttl = ttl or self.default_ttl
        owner = str(user_id)
        await self._client.set(self._key(token), owner, ex=ttl)
        await self._client.sadd(self._index_key(owner), token)
        await self._extend_index(owner, ttl)
        return self._record(owner, token, ttl)

    async def get(self, token: str) -> SessionRecord | None:
        """없거나 만료된 토큰은 None(에러 아님)."""
        key = self._key(token)
        owner = await self._client.get(key)
        if not owner:
            return None
        ttl = await self._client.ttl(key)
        if ttl is None or ttl <= 0:
            return None
        return self._record(owner, token, ttl)

    async def exists(self, token: str) -> bool:
        return bool(await self._client.exists(self._key(token)))

    async def delete(self, token: str) -> bool:
        """멱등. 실제로 지운 키가 있었는지 반환."""
        key = self._key(token)
        owner = await self._client.get(key)
        removed = await self._client.delete(key)
        if owner:
            await self._client.srem(self._index_key(owner), token)
        return bool(removed)

    async def refresh(self, token: str, ttl: int | None = None) -> SessionRecord | None:
        """토큰 값은 그대로 두고 만료만 연장. 없으면 None."""
        ttl = ttl or self.default_ttl
        key = self._key(token)
        owner = await self._client.get(key)
        if not owner:
            return None
        await self._client.expire(key, ttl)
        await self._extend_index(owner, ttl)
        return self._record(owner, token, ttl)

    async def get_all_for_user(self, user_id: int | str) -> list[str]:
        """유저의 살아 있는 토큰 목록. 만료/소유자 불일치 멤버는 인덱스에서 제거."""
        owner = str(user_id)
        index_key = self._index_key(owner)
        members = await self._client.smembers(index_key)
        alive: list[str] = []
        stale: list[str] = []
        for token in members:
            if await self._client.get(self._key(token)) == owner:
                alive.append(token)
            else:
                stale.append(token)
        if stale:
            await self._client.srem(index_key, *stale)
        return sorted(alive)

    async def delete_all_for_user(self, user_id: int | str) -> int:
        """
        전체 로그아웃. 삭제된 세션 수 반환.
        인덱스 키는 지우지 않고 조회한 토큰만 SREM(도중에 생긴 세션의 인덱스 항목 보존).
        """
        tokens = await self.get_all_for_user(user_id)
        if not tokens:
            return 0
        removed = await self._client.delete(*(self._key(t) for t in tokens))
        await self._client.srem(self._index_key(user_id), *tokens)
        return int(removed)

    async def count_for_user(self, user_id: int | str) -> int:
        return len(await self.get_all_for_user(user_id))

    async def _scan(self, prefix: str) -> list[str]:
        return [key async for key in self._client.scan_iter(match=f"{prefix}*")]

    async def count(self) -> int:
        """전체 활성 세션 수. 키스페이스 SCAN이므로 관리용으로만."""
        return len(await self._scan(self._session_prefix))

    async def delete_all(self) -> int:
        """모든 세션 삭제(테스트·로컬 전용). 프로덕션에서는 거부."""
        if settings.is_production:
            raise RuntimeError("Cannot delete all sessions in production")
        session_keys = await self._scan(self._session_prefix)
        index_keys = await self._scan(self._index_prefix)
        if index_keys:
            await self._client.delete(*index_keys)
        if not session_keys:
            return 0
        return int(await self._client.delete(*session_keys))
