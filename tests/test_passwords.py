"""Credential Hasher 단위 테스트."""

import pytest

from portal.core.passwords import (
    KEY_LENGTH,
    SALT_LENGTH,
    InvalidHashError,
    hash_password,
    verify_password,
)


def test_hash_format_is_hex_salt_and_key() -> None:
    encoded = hash_password("correct horse")
    salt, key = encoded.split(":")
    assert len(salt) == SALT_LENGTH * 2
    assert len(key) == KEY_LENGTH * 2
    bytes.fromhex(salt)
    bytes.fromhex(key)


def test_same_password_hashes_differently() -> None:
    """호출마다 새 salt."""
    assert hash_password("same-password") != hash_password("same-password")


def test_verify_roundtrip() -> None:
    encoded = hash_password("s3cret!")
    assert verify_password("s3cret!", encoded) is True
    assert verify_password("s3cret?", encoded) is False


def test_verify_is_case_sensitive_and_handles_unicode() -> None:
    encoded = hash_password("비밀번호Pw")
    assert verify_password("비밀번호Pw", encoded) is True
    assert verify_password("비밀번호pw", encoded) is False


@pytest.mark.parametrize("bad", ["", 123, None])
def test_hash_rejects_empty_or_non_string(bad) -> None:
    with pytest.raises((TypeError, ValueError)):
        hash_password(bad)


@pytest.mark.parametrize(
    "encoded",
    ["no-separator", "a:b:c", ":abcd", "abcd:", "zz:abcd", "abcd:not-hex"],
)
def test_verify_malformed_hash_raises(encoded: str) -> None:
    """포맷 오류는 False가 아니라 InvalidHashError."""
    with pytest.raises(InvalidHashError):
        verify_password("whatever", encoded)


def test_verify_rejects_empty_password() -> None:
    encoded = hash_password("x")
    with pytest.raises(ValueError):
        verify_password("", encoded)
