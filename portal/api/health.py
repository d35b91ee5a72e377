"""Health check 엔드포인트. Redis는 app.state의 세션 저장소용 비동기 클라이언트를 재사용."""

import asyncio

from fastapi import APIRouter, Request
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from portal.core.database import get_async_session_maker

router = APIRouter(tags=["health"])

HEALTH_REDIS_PING_TIMEOUT = 2.0


async def _check_db() -> str:
    """SELECT 1. DB 미초기화도 'error'."""
    maker = get_async_session_maker()
    if not maker:
        return "error"
    try:
        async with maker() as session:
            await session.execute(text("SELECT 1"))
        return "ok"
    except (SQLAlchemyError, OSError):
        return "error"


async def _check_redis(request: Request) -> str:
    """PING에 짧은 timeout. Redis 미설정이면 'disabled'(세션 라우트는 503)."""
    client = getattr(request.app.state, "redis_client", None)
    if client is None:
        return "disabled"
    try:
        await asyncio.wait_for(client.ping(), timeout=HEALTH_REDIS_PING_TIMEOUT)
        return "ok"
    except (asyncio.TimeoutError, RedisError, OSError):
        return "error"


@router.get("/health")
async def get_health(request: Request) -> dict[str, str]:
    """status: ok | degraded. DB 또는 Redis 중 하나라도 error/disabled면 degraded."""
    db_status = await _check_db()
    redis_status = await _check_redis(request)
    status = "ok" if db_status == "ok" and redis_status == "ok" else "degraded"
    return {
        "status": status,
        "db": db_status,
        "redis": redis_status,
    }
