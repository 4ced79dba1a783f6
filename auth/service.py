"""
auth/service.py -- AuthService: registration, login, and token validation.

AuthService composes three collaborators and owns no state of its own:
  - storage ports (auth/ports.py)   -- user persistence and lookup, app lookup
  - the password hasher             -- auth/passwords.py
  - the token codec                 -- auth/tokens.py

Every operation is a single async pipeline with no retries. Failures leave
as AuthError; anything that is not already an AuthError (a database driver
error, a bug) is classified as INTERNAL with the original chained as
__cause__. asyncio.CancelledError is a BaseException and passes through
untouched, so a cancelled caller stops the pipeline at the next await.

bcrypt runs in a worker thread (asyncio.to_thread) so a login does not stall
the event loop for every other request.

Token validation picks the verification secret from the app_id embedded in
the token itself. A token signed for app A therefore never verifies as a
token for app B, even when both apps exist.

Layer rule: no imports from api/ and no import of auth/store.py.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import timedelta

from auth.errors import AuthError, ErrorKind
from auth.hooks import AuthObserver, LoggingObserver
from auth.models import UserInfo
from auth.passwords import MalformedHashError, dummy_hash, hash_password, verify_password
from auth.ports import AppProvider, UserProvider, UserSaver
from auth.tokens import issue_token, peek_app_id, verify_token


def _equalize_timing(password: str, rounds: int | None) -> None:
    verify_password(dummy_hash(rounds), password)


class AuthService:
    """Credential authority engine.

    Usage:
        service = AuthService(store, store, store, token_ttl=timedelta(hours=1))
        user_id = await service.register("Alice", "alice@x.com", "secret123")
        token = await service.login("alice@x.com", "secret123", app_id=1)
        user = await service.validate_token(token)
    """

    def __init__(
        self,
        user_saver: UserSaver,
        user_provider: UserProvider,
        app_provider: AppProvider,
        token_ttl: timedelta,
        bcrypt_rounds: int | None = None,
        observer: AuthObserver | None = None,
    ) -> None:
        self._user_saver = user_saver
        self._user_provider = user_provider
        self._app_provider = app_provider
        self._token_ttl = token_ttl
        self._bcrypt_rounds = bcrypt_rounds
        self._observer = observer or LoggingObserver()

    @contextmanager
    def _operation(self, op: str, **fields) -> Iterator[None]:
        """Report start, classify every failure, and report it once."""
        self._observer.started(op, fields)
        try:
            yield
        except AuthError as exc:
            self._observer.failed(op, exc, exc.__cause__)
            raise
        except Exception as exc:
            error = AuthError(ErrorKind.INTERNAL)
            self._observer.failed(op, error, exc)
            raise error from exc

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def register(
        self,
        name: str,
        email: str,
        password: str,
        role: str = "user",
        is_admin: bool = False,
    ) -> int:
        """Hash the password and persist a new user. Returns the new user ID.

        A duplicate email surfaces as ALREADY_EXISTS from the store; concurrent
        registrations of the same email are serialized by its unique index.
        """
        with self._operation("register", email=email):
            pass_hash = await asyncio.to_thread(hash_password, password, self._bcrypt_rounds)
            user_id = await self._user_saver.save_user(name, email, pass_hash, role, is_admin)
            self._observer.succeeded("register", {"email": email, "user_id": user_id})
            return user_id

    async def login(self, email: str, password: str, app_id: int) -> str:
        """Check the password and issue a token signed with the app's secret.

        Unknown email, wrong password and a corrupt stored hash all produce the
        same INVALID_CREDENTIALS, so the response does not reveal whether the
        account exists. An unknown app_id is NOT_FOUND.
        """
        with self._operation("login", email=email, app_id=app_id):
            try:
                user = await self._user_provider.get_user_by_email(email)
            except AuthError as exc:
                if exc.kind is not ErrorKind.NOT_FOUND:
                    raise
                await asyncio.to_thread(_equalize_timing, password, self._bcrypt_rounds)
                raise AuthError(ErrorKind.INVALID_CREDENTIALS) from exc

            try:
                matched = await asyncio.to_thread(verify_password, user.pass_hash, password)
            except MalformedHashError as exc:
                raise AuthError(ErrorKind.INVALID_CREDENTIALS) from exc
            if not matched:
                raise AuthError(ErrorKind.INVALID_CREDENTIALS)

            app = await self._app_provider.get_app(app_id)
            token = issue_token(user.id, user.email, app.id, app.secret, self._token_ttl)
            self._observer.succeeded("login", {"user_id": user.id, "app_id": app.id})
            return token

    async def validate_token(self, token: str) -> UserInfo:
        """Verify token under its own app's secret and return the live account.

        Every rejection is INVALID_TOKEN: malformed token, unknown app, bad
        signature, foreign algorithm, expiry, and an account that no longer
        matches the token's uid/email pair.
        """
        with self._operation("validate_token"):
            app_id = peek_app_id(token)
            try:
                app = await self._app_provider.get_app(app_id)
            except AuthError as exc:
                if exc.kind is not ErrorKind.NOT_FOUND:
                    raise
                raise AuthError(ErrorKind.INVALID_TOKEN) from exc

            claims = verify_token(token, app.secret)
            if claims.app_id != app.id:
                raise AuthError(ErrorKind.INVALID_TOKEN)

            try:
                user = await self._user_provider.get_user_by_email(claims.email)
            except AuthError as exc:
                if exc.kind is not ErrorKind.NOT_FOUND:
                    raise
                raise AuthError(ErrorKind.INVALID_TOKEN) from exc
            if user.id != claims.user_id:
                raise AuthError(ErrorKind.INVALID_TOKEN)

            self._observer.succeeded("validate_token", {"user_id": user.id, "app_id": app.id})
            return user.to_info()

    async def is_admin(self, user_id: int) -> bool:
        with self._operation("is_admin", user_id=user_id):
            result = await self._user_provider.is_admin(user_id)
            self._observer.succeeded("is_admin", {"user_id": user_id, "is_admin": result})
            return result

    async def get_user(self, user_id: int) -> UserInfo:
        with self._operation("get_user", user_id=user_id):
            user = await self._user_provider.get_user_by_id(user_id)
            self._observer.succeeded("get_user", {"user_id": user_id})
            return user
