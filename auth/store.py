"""
auth/store.py -- SQLAlchemy Core persistence layer for users and apps.

Pattern: Repository + Data Mapper.
UserStore is the repository; _row_to_user / _row_to_user_info / _row_to_app
are the mappers. Service and route code never touches SQL directly.

UserStore implements all three storage ports from auth/ports.py. The
synchronous methods (create_user, get_by_email, ...) hold the queries; the
async port methods run them in a worker thread so the event loop is never
blocked on the database.

Error mapping (the store speaks the service's taxonomy, not SQLAlchemy's):
  IntegrityError on users.email -> AuthError(ALREADY_EXISTS)
  no matching row               -> AuthError(NOT_FOUND)
  id outside INTEGER range      -> AuthError(NOT_FOUND), without a query
  any other SQLAlchemyError     -> propagated as-is; the service reports it
                                   as INTERNAL.

Security:
  All queries use bound parameters. No f-strings in SQL.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    Integer,
    LargeBinary,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    event,
    select,
    text,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.errors import already_exists, not_found
from auth.models import MAX_ID, App, User, UserInfo
from core.config import get_settings

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False, server_default=""),
    # Stored exactly as registered; uniqueness is byte-for-byte.
    Column("email", String(255), nullable=False, unique=True),
    Column("pass_hash", LargeBinary, nullable=False),
    Column("role", String(64), nullable=False, server_default="user"),
    Column("is_admin", Boolean, nullable=False, default=False),
    Column("created_at", String(32), nullable=False),
)

_apps = Table(
    "apps",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False, unique=True),
    Column("secret", Text, nullable=False),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User and App records.

    Usage:
        store = UserStore()
        app_id = store.create_app("billing", secret)
        user_id = store.create_user("Alice", "alice@x.com", hash_password("pw"))
        user = store.get_by_email("alice@x.com")
        store.close()
    """

    def __init__(self, db_url: str | None = None) -> None:
        db_url = db_url or get_settings().database_url
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # User queries
    # ------------------------------------------------------------------

    def create_user(
        self,
        name: str,
        email: str,
        pass_hash: bytes,
        role: str = "user",
        is_admin: bool = False,
    ) -> int:
        """Insert a new user and return its assigned database ID.

        Raises AuthError(ALREADY_EXISTS) if the email is taken. Two concurrent
        inserts for the same email cannot both pass: the UNIQUE index rejects
        the second one.
        """
        try:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _users.insert().values(
                        name=name,
                        email=email,
                        pass_hash=pass_hash,
                        role=role,
                        is_admin=is_admin,
                        created_at=_now_iso(),
                    )
                )
                conn.commit()
                return result.inserted_primary_key[0]
        except IntegrityError as exc:
            raise already_exists("user") from exc

    def get_by_email(self, email: str) -> User:
        """Look up a user by exact email (case-sensitive)."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        if row is None:
            raise not_found("user")
        return _row_to_user(row)

    def get_by_id(self, user_id: int) -> UserInfo:
        """Look up a user's profile by primary key. The hash column is not selected."""
        if not _storable_id(user_id):
            raise not_found("user")
        query = select(_users.c.id, _users.c.name, _users.c.email, _users.c.role)
        with self.engine.connect() as conn:
            row = conn.execute(query.where(_users.c.id == user_id)).fetchone()
        if row is None:
            raise not_found("user")
        return _row_to_user_info(row)

    def get_admin_flag(self, user_id: int) -> bool:
        if not _storable_id(user_id):
            raise not_found("user")
        with self.engine.connect() as conn:
            row = conn.execute(select(_users.c.is_admin).where(_users.c.id == user_id)).fetchone()
        if row is None:
            raise not_found("user")
        return bool(row.is_admin)

    # ------------------------------------------------------------------
    # App queries
    # ------------------------------------------------------------------

    def create_app(self, name: str, secret: str) -> int:
        """Register a calling app. Used by the management CLI only."""
        if not secret:
            raise ValueError("app secret must not be empty")
        try:
            with self.engine.connect() as conn:
                result = conn.execute(_apps.insert().values(name=name, secret=secret))
                conn.commit()
                return result.inserted_primary_key[0]
        except IntegrityError as exc:
            raise already_exists("app") from exc

    def get_app_by_id(self, app_id: int) -> App:
        if not _storable_id(app_id):
            raise not_found("app")
        with self.engine.connect() as conn:
            row = conn.execute(_apps.select().where(_apps.c.id == app_id)).fetchone()
        if row is None:
            raise not_found("app")
        return _row_to_app(row)

    def list_apps(self) -> list[App]:
        """Return all apps ordered by id."""
        with self.engine.connect() as conn:
            rows = conn.execute(_apps.select().order_by(_apps.c.id)).fetchall()
        return [_row_to_app(r) for r in rows]

    # ------------------------------------------------------------------
    # Storage ports (auth/ports.py)
    # ------------------------------------------------------------------

    async def save_user(self, name: str, email: str, pass_hash: bytes, role: str, is_admin: bool) -> int:
        return await asyncio.to_thread(self.create_user, name, email, pass_hash, role, is_admin)

    async def get_user_by_email(self, email: str) -> User:
        return await asyncio.to_thread(self.get_by_email, email)

    async def get_user_by_id(self, user_id: int) -> UserInfo:
        return await asyncio.to_thread(self.get_by_id, user_id)

    async def is_admin(self, user_id: int) -> bool:
        return await asyncio.to_thread(self.get_admin_flag, user_id)

    async def get_app(self, app_id: int) -> App:
        return await asyncio.to_thread(self.get_app_by_id, app_id)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True

    def close(self) -> None:
        self.engine.dispose()


def _storable_id(value: int) -> bool:
    # the sqlite driver raises OverflowError for ints outside signed 64-bit
    return 0 < value <= MAX_ID


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        name=row.name,
        email=row.email,
        pass_hash=bytes(row.pass_hash),
        role=row.role,
        is_admin=bool(row.is_admin),
    )


def _row_to_user_info(row) -> UserInfo:
    return UserInfo(id=row.id, name=row.name, email=row.email, role=row.role)


def _row_to_app(row) -> App:
    return App(id=row.id, name=row.name, secret=row.secret)
