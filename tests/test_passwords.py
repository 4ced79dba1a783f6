"""Unit tests for auth/passwords.py -- bcrypt hashing and verification.

Covers:
- hash/verify agreement, salting (two hashes of one password differ)
- mismatch returns False; corrupt or empty hash raises MalformedHashError
- the configured cost factor ends up in the hash
"""

import bcrypt
import pytest

from auth.passwords import MalformedHashError, dummy_hash, hash_password, verify_password


class TestHashPassword:
    def test_hash_verifies_against_plaintext(self) -> None:
        hashed = hash_password("secret123", rounds=4)
        assert verify_password(hashed, "secret123") is True

    def test_hash_is_salted(self) -> None:
        first = hash_password("secret123", rounds=4)
        second = hash_password("secret123", rounds=4)
        assert first != second
        assert verify_password(first, "secret123")
        assert verify_password(second, "secret123")

    def test_hash_is_not_plaintext(self) -> None:
        hashed = hash_password("secret123", rounds=4)
        assert isinstance(hashed, bytes)
        assert b"secret123" not in hashed

    def test_rounds_recorded_in_hash(self) -> None:
        assert hash_password("pw", rounds=5).startswith(b"$2b$05$")

    def test_default_rounds_come_from_settings(self) -> None:
        """conftest sets BCRYPT_ROUNDS=4 before get_settings() is first called."""
        assert hash_password("pw").startswith(b"$2b$04$")

    def test_non_ascii_password(self) -> None:
        hashed = hash_password("pässwörd-密码", rounds=4)
        assert verify_password(hashed, "pässwörd-密码")
        assert not verify_password(hashed, "passwort-密码")


class TestVerifyPassword:
    def test_wrong_password_returns_false(self) -> None:
        hashed = hash_password("secret123", rounds=4)
        assert verify_password(hashed, "secret124") is False

    def test_empty_password_against_real_hash(self) -> None:
        hashed = hash_password("secret123", rounds=4)
        assert verify_password(hashed, "") is False

    def test_corrupt_hash_raises(self) -> None:
        with pytest.raises(MalformedHashError):
            verify_password(b"not-a-bcrypt-hash", "secret123")

    def test_empty_hash_raises(self) -> None:
        with pytest.raises(MalformedHashError):
            verify_password(b"", "secret123")

    def test_malformed_is_a_value_error(self) -> None:
        assert issubclass(MalformedHashError, ValueError)

    def test_accepts_hash_from_bcrypt_directly(self) -> None:
        hashed = bcrypt.hashpw(b"interop", bcrypt.gensalt(rounds=4))
        assert verify_password(hashed, "interop")


def test_dummy_hash_is_cached_and_valid() -> None:
    assert dummy_hash() is dummy_hash()
    assert verify_password(dummy_hash(), "anything else") is False


def test_dummy_hash_matches_requested_cost() -> None:
    assert dummy_hash(5).startswith(b"$2b$05$")
    assert dummy_hash(4).startswith(b"$2b$04$")
    assert dummy_hash(5) is dummy_hash(5)
