"""
비밀번호 해시. PBKDF2-HMAC-SHA512, 호출마다 새 salt.
저장 포맷: "<hex salt>:<hex derived key>". 검증은 hmac.compare_digest(timing-safe).
"""

import hashlib
import hmac
import secrets

from portal.core.config import settings

DIGEST = "sha512"
KEY_LENGTH = 64
SALT_LENGTH = 32


class InvalidHashError(ValueError):
    """저장된 해시 포맷이 깨진 경우. False로 넘기지 않고 예외로 올린다(Fail-closed)."""

    pass


def _check_password(password: object) -> str:
    if not isinstance(password, str):
        raise TypeError("Password must be a string")
    if not password:
        raise ValueError("Password cannot be empty")
    return password


def _derive(password: str, salt: bytes, iterations: int) -> bytes:
    return hashlib.pbkdf2_hmac(
        DIGEST, password.encode("utf-8"), salt, iterations, dklen=KEY_LENGTH
    )


def hash_password(password: str) -> str:
    """평문 비밀번호 → "salt:key" (hex). 빈 문자열·비문자열 거부."""
    password = _check_password(password)
    salt = secrets.token_bytes(SALT_LENGTH)
    key = _derive(password, salt, settings.password_hash_iterations)
    return f"{salt.hex()}:{key.hex()}"


def verify_password(password: str, encoded: str) -> bool:
    """
    저장된 해시와 비교. 일치 여부만 bool로 반환.
    포맷 오류(구분자 수, 빈 파트, hex 아님)는 InvalidHashError.
    """
    password = _check_password(password)
    if not isinstance(encoded, str):
        raise TypeError("Stored hash must be a string")
    parts = encoded.split(":")
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise InvalidHashError("Invalid hash format")
    try:
        salt = bytes.fromhex(parts[0])
        expected = bytes.fromhex(parts[1])
    except ValueError as e:
        raise InvalidHashError("Invalid hash format") from e
    actual = _derive(password, salt, settings.password_hash_iterations)
    return hmac.compare_digest(actual, expected)
