"""
auth/hooks.py -- Observability hook for AuthService.

The service does not call a logger directly. It reports three events to an
AuthObserver:

  started(op, fields)           -- operation entered
  succeeded(op, fields)         -- operation returned normally
  failed(op, error, cause)      -- a failure was classified into an ErrorKind

`cause` is the raw exception behind the classification (a database error,
a JWTError, a MalformedHashError) or None. It is for logs only.

LoggingObserver is the default and writes key=value lines to the
"gatekeeper.auth" logger, with email addresses masked. Tests pass a
recording observer instead.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

from auth.errors import AuthError, ErrorKind

logger = logging.getLogger("gatekeeper.auth")

# Expected outcomes of normal traffic; anything else is logged as an error.
_KIND_LEVELS = {
    ErrorKind.NOT_FOUND: logging.INFO,
    ErrorKind.ALREADY_EXISTS: logging.INFO,
    ErrorKind.INVALID_CREDENTIALS: logging.INFO,
    ErrorKind.INVALID_TOKEN: logging.WARNING,
}


class AuthObserver(Protocol):
    def started(self, op: str, fields: dict[str, Any]) -> None: ...

    def succeeded(self, op: str, fields: dict[str, Any]) -> None: ...

    def failed(self, op: str, error: AuthError, cause: BaseException | None) -> None: ...


def mask_email(email: str) -> str:
    """alice@example.com -> a***@example.com"""
    local, sep, domain = email.partition("@")
    if not sep:
        return "***"
    return f"{local[:1]}***@{domain}"


def _format_fields(fields: dict[str, Any]) -> str:
    return " ".join(f"{k}={mask_email(v) if k == 'email' else v}" for k, v in fields.items())


class LoggingObserver:
    """Default observer: one log line per event."""

    def __init__(self, log: logging.Logger | None = None) -> None:
        self._log = log or logger

    def started(self, op: str, fields: dict[str, Any]) -> None:
        self._log.info("op=%s event=start %s", op, _format_fields(fields))

    def succeeded(self, op: str, fields: dict[str, Any]) -> None:
        self._log.info("op=%s event=ok %s", op, _format_fields(fields))

    def failed(self, op: str, error: AuthError, cause: BaseException | None) -> None:
        level = _KIND_LEVELS.get(error.kind, logging.ERROR)
        self._log.log(
            level,
            "op=%s event=error kind=%s cause=%r",
            op,
            error.kind.value,
            cause,
            exc_info=cause if level >= logging.ERROR and cause is not None else None,
        )
