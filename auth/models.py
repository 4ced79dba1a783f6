"""
auth/models.py -- Domain dataclasses for the credential authority.

Pattern: Data class (pure data container, almost zero logic). The store and
the service do the work; these classes only own the shape of the data.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

# Largest id the users and apps tables can hold (SQLite INTEGER is signed 64-bit).
MAX_ID = 2**63 - 1


@dataclass
class User:
    """A registered identity, exactly as the store holds it.

    email is stored as given -- no case folding or trimming. Two addresses
    that differ only in case are two different users.

    pass_hash is the raw bcrypt output. It is excluded from repr so a stray
    log line or traceback never prints it, and it never leaves the service:
    every public AuthService operation returns UserInfo instead.
    """

    id: int
    name: str
    email: str
    pass_hash: bytes = field(repr=False)
    role: str = "user"
    is_admin: bool = False

    def to_info(self) -> UserInfo:
        return UserInfo(id=self.id, name=self.name, email=self.email, role=self.role)


@dataclass(frozen=True)
class UserInfo:
    """Read-only profile projection of User. Carries no credential material."""

    id: int
    name: str
    email: str
    role: str


@dataclass(frozen=True)
class App:
    """A calling application. Its secret signs and verifies its own tokens only.

    Apps are provisioned out of band (see main.py create-app); there is no
    registration endpoint.
    """

    id: int
    name: str
    secret: str = field(repr=False)


@dataclass(frozen=True)
class Claims:
    """Verified payload of a session token."""

    user_id: int
    email: str
    app_id: int
    expires_at: datetime
