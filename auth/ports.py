"""
auth/ports.py -- Storage capabilities the service is built against.

AuthService depends on these protocols only, never on UserStore. Anything
with matching async methods can stand in: the SQLAlchemy store in
production, plain in-memory fakes in tests.

Contract for implementers:
  - Missing records raise AuthError(ErrorKind.NOT_FOUND).
  - A duplicate email on save raises AuthError(ErrorKind.ALREADY_EXISTS).
  - Anything else may raise whatever the backend raises; the service
    classifies it as INTERNAL.
"""

from __future__ import annotations

from typing import Protocol

from auth.models import App, User, UserInfo


class UserSaver(Protocol):
    async def save_user(
        self,
        name: str,
        email: str,
        pass_hash: bytes,
        role: str,
        is_admin: bool,
    ) -> int: ...


class UserProvider(Protocol):
    async def get_user_by_email(self, email: str) -> User: ...

    async def get_user_by_id(self, user_id: int) -> UserInfo: ...

    async def is_admin(self, user_id: int) -> bool: ...


class AppProvider(Protocol):
    async def get_app(self, app_id: int) -> App: ...
