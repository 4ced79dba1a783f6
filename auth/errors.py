"""
auth/errors.py -- The error taxonomy shared by the store, the service, and the API.

Every failure that leaves AuthService is an AuthError carrying one ErrorKind.
The store maps its own conditions (unique violation, missing row) into the
same kinds; the API layer maps kinds to HTTP statuses. Raw backend errors are
chained as __cause__ for logging and are never put in the message.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    ALREADY_EXISTS = "already_exists"
    NOT_FOUND = "not_found"
    # Login only. Deliberately covers both "unknown email" and "wrong password".
    INVALID_CREDENTIALS = "invalid_credentials"
    # Validation only. Covers bad signature, wrong algorithm, and expiry alike.
    INVALID_TOKEN = "invalid_token"
    INTERNAL = "internal"


_DEFAULT_MESSAGES = {
    ErrorKind.ALREADY_EXISTS: "already exists",
    ErrorKind.NOT_FOUND: "not found",
    ErrorKind.INVALID_CREDENTIALS: "invalid credentials",
    ErrorKind.INVALID_TOKEN: "invalid token",
    ErrorKind.INTERNAL: "internal error",
}


class AuthError(Exception):
    """A classified failure. Compare on .kind, not on the message text."""

    def __init__(self, kind: ErrorKind, message: str | None = None) -> None:
        self.kind = kind
        self.message = message or _DEFAULT_MESSAGES[kind]
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"AuthError({self.kind.value!r}, {self.message!r})"


def not_found(what: str) -> AuthError:
    return AuthError(ErrorKind.NOT_FOUND, f"{what} not found")


def already_exists(what: str) -> AuthError:
    return AuthError(ErrorKind.ALREADY_EXISTS, f"{what} already exists")
