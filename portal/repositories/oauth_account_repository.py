"""OAuthAccount Repository. 제공자 계정 조회·생성·토큰 갱신·삭제."""

from datetime import datetime

from sqlalchemy import delete as sa_delete
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from portal.models.oauth_account import OAuthAccount


async def create(
    session: AsyncSession,
    *,
    user_id: int,
    provider: str,
    provider_account_id: str,
    access_token: str | None,
    refresh_token: str | None = None,
    id_token: str | None = None,
    expires_at: datetime | None = None,
    token_type: str | None = "Bearer",
    scope: str | None = None,
) -> OAuthAccount:
    """INSERT. (provider, provider_account_id) 중복은 IntegrityError로 전파."""
    account = OAuthAccount(
        user_id=user_id,
        provider=provider,
        provider_account_id=provider_account_id,
        access_token=access_token,
        refresh_token=refresh_token,
        id_token=id_token,
        expires_at=expires_at,
        token_type=token_type,
        scope=scope,
    )
    session.add(account)
    await session.flush()
    await session.refresh(account)
    return account


async def get_by_provider(
    session: AsyncSession, provider: str, provider_account_id: str
) -> OAuthAccount | None:
    """provider + provider_account_id로 조회."""
    result = await session.execute(
        select(OAuthAccount).where(
            OAuthAccount.provider == provider,
            OAuthAccount.provider_account_id == provider_account_id,
        )
    )
    return result.scalars().one_or_none()


async def get_by_user_and_provider(
    session: AsyncSession, user_id: int, provider: str
) -> OAuthAccount | None:
    result = await session.execute(
        select(OAuthAccount)
        .where(OAuthAccount.user_id == user_id, OAuthAccount.provider == provider)
        .order_by(OAuthAccount.id)
        .limit(1)
    )
    return result.scalars().first()


async def list_by_user(session: AsyncSession, user_id: int) -> list[OAuthAccount]:
    """유저의 연결 계정 목록. 최근 연결 순."""
    result = await session.execute(
        select(OAuthAccount)
        .where(OAuthAccount.user_id == user_id)
        .order_by(OAuthAccount.created_at.desc(), OAuthAccount.id.desc())
    )
    return list(result.scalars().all())


async def update_tokens(
    session: AsyncSession,
    account: OAuthAccount,
    *,
    access_token: str | None,
    refresh_token: str | None,
    id_token: str | None,
    expires_at: datetime | None,
) -> OAuthAccount:
    """콜백·토큰 갱신 시 제공자 토큰 자료 덮어쓰기."""
    account.access_token = access_token
    account.refresh_token = refresh_token
    account.id_token = id_token
    account.expires_at = expires_at
    await session.flush()
    await session.refresh(account)
    return account


async def delete(session: AsyncSession, account_id: int) -> bool:
    """id로 삭제. 삭제 여부 반환."""
    result = await session.execute(
        sa_delete(OAuthAccount).where(OAuthAccount.id == account_id)
    )
    return (result.rowcount or 0) > 0


async def delete_by_user_and_provider(
    session: AsyncSession, user_id: int, provider: str
) -> int:
    result = await session.execute(
        sa_delete(OAuthAccount).where(
            OAuthAccount.user_id == user_id, OAuthAccount.provider == provider
        )
    )
    return result.rowcount or 0


async def count_by_user(session: AsyncSession, user_id: int) -> int:
    result = await session.execute(
        select(func.count()).select_from(OAuthAccount).where(OAuthAccount.user_id == user_id)
    )
    return int(result.scalar_one())
