"""User Repository. DB 쿼리만 수행. email 정규화는 호출 전에 끝나 있어야 한다."""

from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from portal.models.user import User


async def create(
    session: AsyncSession,
    *,
    email: str,
    name: str,
    role: str,
    password_hash: str | None = None,
    suspended: bool = False,
) -> User:
    """유저 INSERT 후 flush로 id 확보. 유니크 위반은 IntegrityError로 전파."""
    user = User(
        email=email,
        name=name,
        role=role,
        password_hash=password_hash,
        suspended=suspended,
    )
    session.add(user)
    await session.flush()
    await session.refresh(user)
    return user


async def get_by_id(session: AsyncSession, user_id: int) -> User | None:
    """id로 유저 조회."""
    result = await session.execute(select(User).where(User.id == user_id))
    return result.scalars().one_or_none()


async def get_by_email(session: AsyncSession, email: str) -> User | None:
    """email 대소문자 무시 조회."""
    result = await session.execute(
        select(User).where(func.lower(User.email) == email.strip().lower())
    )
    return result.scalars().one_or_none()


async def update(session: AsyncSession, user_id: int, **values: Any) -> User | None:
    """지정 컬럼만 갱신. 없는 유저면 None."""
    user = await get_by_id(session, user_id)
    if user is None:
        return None
    for key, value in values.items():
        setattr(user, key, value)
    await session.flush()
    await session.refresh(user)
    return user


async def set_suspended(session: AsyncSession, user_id: int, suspended: bool) -> User | None:
    """정지/해제. 정지 반영은 다음 인증 경로(refresh, verify)에서 이뤄진다."""
    return await update(session, user_id, suspended=suspended)
