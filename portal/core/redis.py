"""Redis 비동기 클라이언트. 세션(Refresh/Reset 토큰) 저장소용. lifespan에서 한 번 생성해 주입."""

import logging

import redis.asyncio as redis

from portal.core.config import settings

logger = logging.getLogger(__name__)


def _redis_pool_kwargs() -> dict:
    """ConnectionPool 공통 옵션. 타임아웃 명시로 장애 시 무한 대기 방지."""
    return {
        "decode_responses": True,
        "socket_timeout": settings.redis_socket_timeout,
        "socket_connect_timeout": settings.redis_socket_connect_timeout,
    }


def create_session_client() -> redis.Redis | None:
    """
    세션 저장소용 클라이언트. REDIS_URL 없으면 None(인증 라우트는 503).
    재시도 없음: 일시 장애는 호출자에게 그대로 전파.
    """
    if not settings.redis_url:
        logger.warning("REDIS_URL not set. Session store disabled.")
        return None
    pool = redis.ConnectionPool.from_url(
        settings.redis_url,
        max_connections=settings.redis_max_connections,
        **_redis_pool_kwargs(),
    )
    return redis.Redis(connection_pool=pool)
