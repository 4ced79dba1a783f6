"""
auth/passwords.py -- One-way password hashing (bcrypt).

Using bcrypt directly rather than passlib[bcrypt]: passlib's wrap-bug
detection builds a password longer than 72 bytes, which bcrypt 4.x rejects.

Passwords longer than 72 bytes are truncated by bcrypt. The API layer caps
the password field at 72 characters, which keeps ASCII input under the limit.

verify_password() separates two failure modes:
  - mismatch        -> returns False
  - corrupt hash    -> raises MalformedHashError
Callers must treat both as "authentication failed"; the distinction exists
only so the log line can tell a bad password from a damaged record.
"""

from __future__ import annotations

from functools import lru_cache

import bcrypt

from core.config import get_settings


class MalformedHashError(ValueError):
    """The stored value is not a usable bcrypt hash."""


def hash_password(plain: str, rounds: int | None = None) -> bytes:
    """Return a salted bcrypt hash of plain. Each call uses a fresh salt."""
    cost = rounds if rounds is not None else get_settings().bcrypt_rounds
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=cost))


def verify_password(hashed: bytes, plain: str) -> bool:
    """Return True if plain matches hashed, False if it does not."""
    if not hashed:
        raise MalformedHashError("empty password hash")
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), bytes(hashed))
    except ValueError as exc:
        # bcrypt raises ValueError("Invalid salt") for anything it cannot parse
        raise MalformedHashError(str(exc)) from exc


def dummy_hash(rounds: int | None = None) -> bytes:
    """Hash compared against when a login names an unknown email.

    Running bcrypt on the unknown-user path keeps its response time in line
    with the wrong-password path, so timing does not reveal which emails
    are registered. Pass the same rounds the real hashes are made with.
    """
    return _dummy_hash_for_cost(rounds if rounds is not None else get_settings().bcrypt_rounds)


@lru_cache
def _dummy_hash_for_cost(rounds: int) -> bytes:
    return hash_password("gatekeeper_timing_dummy", rounds)
