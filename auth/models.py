"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in library/models.py -- dataclasses own domain shape; stores, the service and
routes do the work.

Layer rule: no imports from api/, web/, or library/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    """Closed set of roles. Anything else is rejected at the storage boundary."""

    user = "user"
    admin = "admin"


@dataclass
class User:
    """A credential record.

    username is unique (enforced by the users table, not by a pre-check) and
    stored trimmed. email is optional and stored trimmed + lowercased.
    hashed_password is either a bcrypt record or a legacy "salt:hash"
    PBKDF2 record -- see auth/passwords.py. It never leaves the server:
    response models in api/models.py have no field for it.
    """

    username: str
    hashed_password: str
    role: Role = Role.user
    email: str | None = None
    id: int | None = None
    created_at: str | None = None
    updated_at: str | None = None


@dataclass(frozen=True)
class SessionRecord:
    """Server-side state behind one session cookie.

    Lives only in a SessionStore. expires_at is a unix timestamp stamped by
    the store on set(); a record past it is treated as absent.
    """

    session_id: str
    signature: str
    user_id: int
    username: str
    role: Role
    expires_at: float = 0.0

    @property
    def cookie_value(self) -> str:
        return f"{self.session_id}.{self.signature}"


@dataclass(frozen=True)
class SessionContext:
    """Request-scoped identity attached by SessionMiddleware.

    request.state.session holds one of these, or None for anonymous requests.
    """

    session_id: str
    user_id: int
    username: str
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role is Role.admin

    @classmethod
    def from_record(cls, record: SessionRecord) -> SessionContext:
        return cls(
            session_id=record.session_id,
            user_id=record.user_id,
            username=record.username,
            role=record.role,
        )
