"""
Auth Service. 회원가입, 로그인/로그아웃, Access 재발급, 비밀번호 변경/재설정, 세션 철회.

비밀번호 해시·토큰 발급은 portal.core, 유저는 user_repository(transaction() 내부),
Refresh/Reset 토큰은 SessionStore(Redis)에 둔다. 실패는 전부 portal.core.errors 예외로 올린다.
"""

import asyncio
from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError

from portal.core.config import settings
from portal.core.database import transaction
from portal.core.errors import (
    AlreadyExistsError,
    ForbiddenError,
    InvalidCredentialsError,
    NotFoundError,
    TokenInvalidError,
    UnauthorizedError,
)
from portal.core.passwords import hash_password, verify_password
from portal.core.tokens import (
    generate_access_token,
    generate_refresh_token,
    verify_access_token,
)
from portal.models.user import User
from portal.repositories import user_repository
from portal.repositories.session_repository import SessionStore
from portal.schemas.auth import TokenPair
from portal.schemas.user import UserCreate, normalize_email

SUSPENDED_MESSAGE = "Your account has been suspended"


@dataclass
class LoginResult:
    tokens: TokenPair
    user: User


def issue_token_pair(user: User) -> TokenPair:
    """Access(JWT) + Refresh(opaque) 발급. 세션 저장은 호출자 몫."""
    return TokenPair(
        access_token=generate_access_token(str(user.id), user.role),
        refresh_token=generate_refresh_token(),
    )


class AuthService:
    """
    세션 저장소는 생성자로 주입(lifespan에서 만든 Redis 클라이언트 기반).
    인스턴스 자체는 상태가 없어 요청 간 공유해도 된다.
    """

    def __init__(
        self,
        session_store: SessionStore,
        *,
        session_ttl_seconds: int | None = None,
        reset_ttl_seconds: int | None = None,
    ) -> None:
        self.sessions = session_store
        self.session_ttl = session_ttl_seconds or settings.session_ttl_days * 24 * 60 * 60
        self.reset_ttl = reset_ttl_seconds or settings.password_reset_ttl_minutes * 60

    async def register(self, candidate: UserCreate) -> User:
        """email 중복 시 AlreadyExistsError. password가 있으면 해시 후 저장."""
        password_hash = (
            await asyncio.to_thread(hash_password, candidate.password)
            if candidate.password
            else None
        )
        try:
            async with transaction() as session:
                if await user_repository.get_by_email(session, candidate.email) is not None:
                    raise AlreadyExistsError(
                        f"User with email {candidate.email} already exists"
                    )
                return await user_repository.create(
                    session,
                    email=candidate.email,
                    name=candidate.name,
                    role=str(candidate.role),
                    password_hash=password_hash,
                    suspended=False,
                )
        except IntegrityError as e:
            # 동시 가입 경쟁에서 유니크 제약에 걸린 경우
            raise AlreadyExistsError(
                f"User with email {candidate.email} already exists"
            ) from e

    async def login(self, email: str, password: str) -> LoginResult:
        """
        유저 없음·비밀번호 없음·비밀번호 불일치는 모두 같은 InvalidCredentialsError.
        정지 계정은 자격 증명 정답 여부와 무관하게 ForbiddenError.
        """
        async with transaction() as session:
            user = await user_repository.get_by_email(session, normalize_email(email))
        if user is None:
            raise InvalidCredentialsError("Invalid email or password")
        if user.suspended:
            raise ForbiddenError(SUSPENDED_MESSAGE)
        if user.password_hash is None:
            raise InvalidCredentialsError("Invalid email or password")
        if not await asyncio.to_thread(verify_password, password, user.password_hash):
            raise InvalidCredentialsError("Invalid email or password")

        tokens = issue_token_pair(user)
        await self.sessions.create(user.id, tokens.refresh_token, self.session_ttl)
        return LoginResult(tokens=tokens, user=user)

    async def logout(self, refresh_token: str) -> None:
        """세션 삭제. 이미 없으면 조용히 통과."""
        await self.sessions.delete(refresh_token)

    async def refresh_access_token(
        self, refresh_token: str, rotate: bool = False
    ) -> TokenPair:
        """
        세션 조회 → 유저 재조회(삭제·정지 시 세션 정리 후 거부) → 새 Access 발급.
        rotate=True: 기존 세션 삭제 후 새 토큰으로 생성(두 번의 호출, 비원자적).
        삭제에 실패(다른 요청이 먼저 회전)한 쪽은 UnauthorizedError.
        rotate=False: 기존 세션 TTL만 연장.
        """
        record = await self.sessions.get(refresh_token)
        if record is None:
            raise UnauthorizedError("Invalid or expired refresh token")

        async with transaction() as session:
            user = await user_repository.get_by_id(session, int(record.user_id))
        if user is None:
            await self.sessions.delete(refresh_token)
            raise UnauthorizedError("User not found")
        if user.suspended:
            await self.sessions.delete(refresh_token)
            raise ForbiddenError(SUSPENDED_MESSAGE)

        access_token = generate_access_token(str(user.id), user.role)
        if not rotate:
            # 조회 이후 로그아웃·만료된 세션은 연장되지 않는다
            if await self.sessions.refresh(refresh_token, self.session_ttl) is None:
                raise UnauthorizedError("Invalid or expired refresh token")
            return TokenPair(access_token=access_token, refresh_token=refresh_token)

        if not await self.sessions.delete(refresh_token):
            raise UnauthorizedError("Invalid or expired refresh token")
        new_refresh_token = generate_refresh_token()
        await self.sessions.create(user.id, new_refresh_token, self.session_ttl)
        return TokenPair(access_token=access_token, refresh_token=new_refresh_token)

    async def verify_token(self, access_token: str) -> User:
        """
        Access JWT 검증 후 DB의 유저 반환. 만료/위조 구분 없이 TokenInvalidError.
        유저 삭제는 NotFoundError, 정지는 ForbiddenError(발급 후 정지도 여기서 차단).
        """
        try:
            payload = verify_access_token(access_token)
            user_id = int(payload.user_id)
        except (UnauthorizedError, ValueError) as e:
            raise TokenInvalidError("Invalid or expired access token") from e

        async with transaction() as session:
            user = await user_repository.get_by_id(session, user_id)
        if user is None:
            raise NotFoundError("User not found")
        if user.suspended:
            raise ForbiddenError(SUSPENDED_MESSAGE)
        return user

    async def change_password(
        self,
        user_id: int,
        current_password: str,
        new_password: str,
        revoke_all_sessions: bool = True,
    ) -> None:
        """현재 비밀번호 확인 후 변경. 기본으로 해당 유저의 모든 세션 철회."""
        async with transaction() as session:
            user = await user_repository.get_by_id(session, user_id)
        if user is None:
            raise NotFoundError("User not found")
        if user.password_hash is None or not await asyncio.to_thread(
            verify_password, current_password, user.password_hash
        ):
            raise InvalidCredentialsError("Current password is incorrect")

        new_hash = await asyncio.to_thread(hash_password, new_password)
        async with transaction() as session:
            await user_repository.update(session, user_id, password_hash=new_hash)

        if revoke_all_sessions:
            await self.revoke_all_sessions(user_id)

    async def request_password_reset(self, email: str) -> str:
        """
        재설정 토큰 발급(세션 저장소에 짧은 TTL로 저장, 소유자=유저).
        토큰 전달(메일 등)은 외부 협력자 담당이라 그대로 반환한다.
        """
        async with transaction() as session:
            user = await user_repository.get_by_email(session, normalize_email(email))
        if user is None:
            raise NotFoundError("User not found")
        reset_token = generate_refresh_token()
        await self.sessions.create(user.id, reset_token, self.reset_ttl)
        return reset_token

    async def reset_password(self, reset_token: str, new_password: str) -> None:
        """재설정 토큰으로 비밀번호 교체. 토큰 소비 후 나머지 세션 전부 철회."""
        record = await self.sessions.get(reset_token)
        if record is None:
            raise UnauthorizedError("Invalid or expired reset token")

        new_hash = await asyncio.to_thread(hash_password, new_password)
        async with transaction() as session:
            user = await user_repository.update(
                session, int(record.user_id), password_hash=new_hash
            )
        if user is None:
            await self.sessions.delete(reset_token)
            raise NotFoundError("User not found")

        await self.sessions.delete(reset_token)
        await self.revoke_all_sessions(user.id)

    async def revoke_all_sessions(self, user_id: int) -> int:
        return await self.sessions.delete_all_for_user(user_id)

    async def get_active_sessions(self, user_id: int) -> list[str]:
        return await self.sessions.get_all_for_user(user_id)

    async def get_session_count(self, user_id: int) -> int:
        return await self.sessions.count_for_user(user_id)
