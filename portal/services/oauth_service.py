"""
OAuth Service. 제공자 콜백 처리(로컬 유저 조회/생성/연결), 명시적 연결·해제, 연결 계정 조회.

규칙:
- 제공자 계정(provider, subject)은 로컬 유저 1명에만 매핑.
- 같은 email의 비밀번호 계정이 있으면 자동 연결하지 않는다(계정 탈취 경로 차단).
  비밀번호로 로그인한 뒤 link_oauth_account로 명시 연결해야 한다.
- 비밀번호 없는 계정의 마지막 제공자는 해제 불가.
- 세션 저장은 하지 않는다. 콜백 결과의 refresh 토큰 저장은 호출자(라우터) 몫.

제공자 email을 소유 증명으로 신뢰한다. email_verified 플래그는 검사하지 않는다(DESIGN.md 참고).
"""

from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from portal.core.database import transaction
from portal.core.errors import (
    AlreadyExistsError,
    ForbiddenError,
    InvalidCredentialsError,
    InvalidStateError,
    NotFoundError,
)
from portal.models.oauth_account import OAuthAccount
from portal.models.user import User, UserRole
from portal.repositories import oauth_account_repository, user_repository
from portal.schemas.auth import TokenPair
from portal.schemas.oauth import DEFAULT_OAUTH_SCOPE, ProviderProfile, ProviderTokens
from portal.schemas.user import normalize_email
from portal.services.auth_service import SUSPENDED_MESSAGE, issue_token_pair


@dataclass
class OAuthCallbackResult:
    user: User
    tokens: TokenPair
    is_new_user: bool


class OAuthService:
    async def handle_provider_callback(
        self, profile: ProviderProfile, tokens: ProviderTokens
    ) -> OAuthCallbackResult:
        """
        1. (provider, subject)로 기존 연결 조회
           - 있음: 소유 유저 로드. 유저가 사라졌으면 연결 행 삭제(커밋) 후 NotFoundError. 아니면 토큰 갱신.
           - 없음: email로 유저 조회
             - 비밀번호 계정 → InvalidCredentialsError (아무것도 생성하지 않음)
             - 비밀번호 없는 계정 → 연결
             - 없음 → 비밀번호 없는 student 유저 생성(is_new_user=True)
             그리고 OAuthAccount 생성
        2. 정지 유저는 ForbiddenError
        3. Access + Refresh 발급(로그인과 동일)
        """
        provider = profile.provider
        email = normalize_email(profile.email)
        is_new_user = False
        orphaned = False
        user: User | None = None

        try:
            async with transaction() as session:
                account = await oauth_account_repository.get_by_provider(
                    session, provider, profile.subject_id
                )
                if account is not None:
                    user = await user_repository.get_by_id(session, account.user_id)
                    if user is None:
                        await oauth_account_repository.delete(session, account.id)
                        orphaned = True
                    else:
                        await oauth_account_repository.update_tokens(
                            session,
                            account,
                            access_token=tokens.access_token,
                            refresh_token=tokens.refresh_token,
                            id_token=tokens.id_token,
                            expires_at=tokens.expires_at(),
                        )
                else:
                    user = await user_repository.get_by_email(session, email)
                    if user is not None and user.password_hash is not None:
                        raise InvalidCredentialsError(
                            "An account with this email already exists. "
                            f"Please log in with your password first to link your {provider} account."
                        )
                    if user is None:
                        user = await user_repository.create(
                            session,
                            email=email,
                            name=profile.name,
                            role=str(UserRole.STUDENT),
                            password_hash=None,
                            suspended=False,
                        )
                        is_new_user = True
                    await self._create_account(session, user.id, provider, profile, tokens)
        except IntegrityError as e:
            # 같은 제공자 계정 또는 email로 동시에 들어온 콜백이 먼저 커밋한 경우
            raise AlreadyExistsError(
                f"This {provider} account is already linked. Please try again."
            ) from e

        # 고아 연결 행 삭제는 위 트랜잭션에서 커밋된 뒤에 예외를 올린다.
        if orphaned or user is None:
            raise NotFoundError("User account not found for OAuth account")
        if user.suspended:
            raise ForbiddenError(SUSPENDED_MESSAGE)

        return OAuthCallbackResult(
            user=user, tokens=issue_token_pair(user), is_new_user=is_new_user
        )

    async def link_oauth_account(
        self,
        user_id: int,
        provider: str,
        profile: ProviderProfile,
        tokens: ProviderTokens,
    ) -> OAuthAccount:
        """로그인한 유저가 명시적으로 제공자 계정 연결. 이미 연결돼 있으면 AlreadyExistsError."""
        try:
            async with transaction() as session:
                user = await user_repository.get_by_id(session, user_id)
                if user is None:
                    raise NotFoundError("User not found")
                if await oauth_account_repository.get_by_user_and_provider(
                    session, user_id, provider
                ):
                    raise AlreadyExistsError(
                        f"{provider} account is already linked to your account"
                    )
                if await oauth_account_repository.get_by_provider(
                    session, provider, profile.subject_id
                ):
                    raise AlreadyExistsError(
                        f"This {provider} account is already linked to another user"
                    )
                return await self._create_account(
                    session, user_id, provider, profile, tokens
                )
        except IntegrityError as e:
            raise AlreadyExistsError(
                f"This {provider} account is already linked to another user"
            ) from e

    async def unlink_oauth_account(self, user_id: int, provider: str) -> None:
        """연결 해제. 비밀번호 없고 마지막 제공자면 InvalidStateError(자기 잠금 방지)."""
        async with transaction() as session:
            user = await user_repository.get_by_id(session, user_id)
            if user is None:
                raise NotFoundError("User not found")
            account = await oauth_account_repository.get_by_user_and_provider(
                session, user_id, provider
            )
            if account is None:
                raise NotFoundError(f"No {provider} account linked to your account")
            linked = await oauth_account_repository.count_by_user(session, user_id)
            if linked <= 1 and user.password_hash is None:
                raise InvalidStateError(
                    "Cannot unlink your only authentication method. Please set a password first."
                )
            await oauth_account_repository.delete_by_user_and_provider(
                session, user_id, provider
            )

    async def get_user_oauth_accounts(self, user_id: int) -> list[OAuthAccount]:
        async with transaction() as session:
            return await oauth_account_repository.list_by_user(session, user_id)

    async def has_oauth_provider(self, user_id: int, provider: str) -> bool:
        return await self.get_oauth_account(user_id, provider) is not None

    async def get_oauth_account(self, user_id: int, provider: str) -> OAuthAccount | None:
        async with transaction() as session:
            return await oauth_account_repository.get_by_user_and_provider(
                session, user_id, provider
            )

    async def refresh_oauth_tokens(
        self, user_id: int, provider: str, tokens: ProviderTokens
    ) -> OAuthAccount:
        """제공자 토큰 갱신 결과 저장. 연결이 없으면 NotFoundError."""
        async with transaction() as session:
            account = await oauth_account_repository.get_by_user_and_provider(
                session, user_id, provider
            )
            if account is None:
                raise NotFoundError(f"No {provider} account linked to your account")
            return await oauth_account_repository.update_tokens(
                session,
                account,
                access_token=tokens.access_token,
                refresh_token=tokens.refresh_token,
                id_token=tokens.id_token,
                expires_at=tokens.expires_at(),
            )

    @staticmethod
    async def _create_account(
        session: AsyncSession,
        user_id: int,
        provider: str,
        profile: ProviderProfile,
        tokens: ProviderTokens,
    ) -> OAuthAccount:
        return await oauth_account_repository.create(
            session,
            user_id=user_id,
            provider=provider,
            provider_account_id=profile.subject_id,
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            id_token=tokens.id_token,
            expires_at=tokens.expires_at(),
            token_type="Bearer",
            scope=tokens.scope or DEFAULT_OAUTH_SCOPE,
        )
