# scripts/create_admin.py
"""관리자 계정 생성. 사용법: python scripts/create_admin.py admin@school.ac.kr "관리자" [--password ...]"""

import argparse
import asyncio
import getpass
import os
import sys

# 모듈 경로 설정
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from portal.core.database import dispose_db, init_db, verify_db_connection
from portal.core.errors import AlreadyExistsError
from portal.core.redis import create_session_client
from portal.models.user import UserRole
from portal.repositories.session_repository import SessionStore
from portal.schemas.user import UserCreate
from portal.services.auth_service import AuthService

# 윈도우 환경 asyncio 에러 방지
if sys.platform.startswith("win"):
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create a portal admin account")
    parser.add_argument("email")
    parser.add_argument("name")
    parser.add_argument("--password", help="생략하면 프롬프트로 입력")
    return parser.parse_args()


async def create_admin(email: str, name: str, password: str) -> int:
    init_db()
    await verify_db_connection()
    # register는 세션 저장소를 쓰지 않지만 AuthService 생성에 필요
    client = create_session_client()
    try:
        service = AuthService(SessionStore(client))
        user = await service.register(
            UserCreate(email=email, password=password, name=name, role=UserRole.ADMIN)
        )
        print(f"✅ 관리자 생성 완료: id={user.id} email={user.email}")
        return 0
    except AlreadyExistsError as e:
        print(f"❌ 생성 실패: {e.message}")
        return 1
    finally:
        if client is not None:
            await client.aclose()
        await dispose_db()


if __name__ == "__main__":
    args = _parse_args()
    password = args.password or getpass.getpass("Password: ")
    if len(password) < 8:
        print("❌ 비밀번호는 8자 이상이어야 합니다.")
        sys.exit(1)
    sys.exit(asyncio.run(create_admin(args.email, args.name, password)))
