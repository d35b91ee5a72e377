"""비동기 DB 엔진·세션 관리. SQLAlchemy 2.0 + asyncpg. 트랜잭션 경계는 서비스 레이어에서만."""

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from contextvars import ContextVar
from typing import Any

from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from portal.core.config import settings

logger = logging.getLogger(__name__)


# 전역 변수 직접 뮤테이션 대신 Holder + getter. 테스트에서 override_db_for_testing으로 교체.
class _DbHolder:
    engine: AsyncEngine | None = None
    session_maker: async_sessionmaker[AsyncSession] | None = None


_db_holder = _DbHolder()

# transaction() 중첩 시 같은 세션 공유. 진입 시 set, finally에서 reset.
_session_context: ContextVar[AsyncSession | None] = ContextVar(
    "portal_session_context", default=None
)


def _async_database_url(url: str) -> str:
    """드라이버만 asyncpg로 교체. postgres://, postgresql+psycopg:// 등 모두 허용."""
    return str(make_url(url.strip()).set(drivername="postgresql+asyncpg"))


def make_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """세션 팩토리. commit 후에도 ORM 객체를 응답에 쓰므로 expire_on_commit=False."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


def get_engine() -> AsyncEngine | None:
    return _db_holder.engine


def get_async_session_maker() -> async_sessionmaker[AsyncSession] | None:
    return _db_holder.session_maker


def init_db() -> None:
    """DATABASE_URL이 있으면 엔진·세션 팩토리 생성. 없으면 경고만(health는 degraded)."""
    if not settings.database_url:
        logger.warning("DATABASE_URL not set. DB features disabled.")
        return

    _db_holder.engine = create_async_engine(
        _async_database_url(settings.database_url),
        echo=False,
        pool_pre_ping=True,
    )
    _db_holder.session_maker = make_session_maker(_db_holder.engine)


def override_db_for_testing(
    engine: AsyncEngine | None = None,
    session_maker: async_sessionmaker[AsyncSession] | None = None,
) -> None:
    """테스트용. SQLite 인메모리 엔진 등으로 Holder 교체. None 전달 시 해제."""
    _db_holder.engine = engine
    if session_maker is None and engine is not None:
        session_maker = make_session_maker(engine)
    _db_holder.session_maker = session_maker


async def dispose_db() -> None:
    """lifespan 종료 시 커넥션 풀 정리."""
    if _db_holder.engine is not None:
        await _db_holder.engine.dispose()


async def verify_db_connection() -> None:
    """
    부팅 시 DB 연결 확인. 재시도 후에도 실패하면 Sentry 보고 후 RuntimeError로 부팅 중단.
    컨테이너 환경에서 DB가 늦게 뜨는 경우 대비.
    """
    maker = get_async_session_maker()
    if not _db_holder.engine or not maker:
        return

    last_exc: Exception | None = None
    retries = max(1, settings.db_connect_retries)
    interval = max(0.5, settings.db_connect_retry_interval_sec)

    for attempt in range(1, retries + 1):
        try:
            async with maker() as session:
                await session.execute(text("SELECT 1"))
            return
        except Exception as exc:
            last_exc = exc
            if attempt < retries:
                logger.warning(
                    "Database connection attempt %d/%d failed: %s. Retrying in %.1fs...",
                    attempt,
                    retries,
                    exc,
                    interval,
                )
                await asyncio.sleep(interval)

    try:
        import sentry_sdk

        with sentry_sdk.new_scope() as scope:
            scope.set_tag("context", "database_connection_check")
            scope.set_context("database", {"retries": retries})
            sentry_sdk.capture_exception(last_exc)
    except ImportError:
        pass

    logger.critical(
        "Database connection failed after %d attempts: %s. Aborting startup.",
        retries,
        last_exc,
        exc_info=True,
    )
    raise RuntimeError(
        "Database connection failed after %d attempts: %s" % (retries, last_exc)
    ) from last_exc


@asynccontextmanager
async def transaction() -> AsyncGenerator[AsyncSession, None]:
    """
    서비스 레이어용 트랜잭션. 성공 시 commit, 예외 시 rollback 후 재전파.
    이미 열린 transaction() 안에서 호출되면 같은 세션을 그대로 넘기고 commit은 최외곽에서만.
    """
    maker = get_async_session_maker()
    if not maker:
        raise RuntimeError("Database not initialized. Set DATABASE_URL.")

    existing = _session_context.get()
    if existing is not None:
        yield existing
        return

    session: AsyncSession | None = None
    token: Any = None
    try:
        session = maker()
        token = _session_context.set(session)
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
    finally:
        if token is not None:
            _session_context.reset(token)
        if session is not None:
            await session.close()
