"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic beyond field projection).
Dataclasses own domain shape; the store and service do the work.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any

# Closed set of privilege levels. Stored verbatim in users.role.
ROLES: tuple[str, ...] = (
    "ADMINISTRATEUR",
    "CHERCHEUR",
    "ASSISTANT_CHERCHEUR",
    "TECHNICIEN_SUPERIEUR",
)

# Roles allowed to create user accounts.
USER_ADMIN_ROLES: frozenset[str] = frozenset({"ADMINISTRATEUR"})

# Audit vocabulary
ACTION_LOGIN = "LOGIN"
ACTION_CREATE = "CREATE"
ACTION_UPDATE = "UPDATE"
ENTITY_USER = "USER"


@dataclass
class User:
    """A person with a login on the platform.

    hashed_password is the bcrypt hash; it never leaves the auth package.
    Use public() to get a serializable view without it.

    supervisor_id points at another User (many-to-one). The inverse collection
    is loaded on demand via UserStore.list_supervised().

    id is None before the record is written to the database.
    """

    email: str
    role: str
    first_name: str = ""
    last_name: str = ""
    id: int | None = None
    hashed_password: str | None = None
    phone: str | None = None
    is_active: bool = True
    supervisor_id: int | None = None
    created_at: str | None = None
    updated_at: str | None = None
    last_login: str | None = None

    def public(self) -> dict[str, Any]:
        """Return every field except hashed_password."""
        return {f.name: getattr(self, f.name) for f in fields(self) if f.name != "hashed_password"}

    def summary(self) -> dict[str, Any]:
        """Short identity card used for supervisor / supervised-user listings."""
        return {
            "id": self.id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "email": self.email,
            "role": self.role,
        }


@dataclass
class NewUser:
    """Registration input. password is plaintext and is hashed before storage."""

    email: str
    password: str
    role: str
    first_name: str = ""
    last_name: str = ""
    phone: str | None = None
    supervisor_id: int | None = None


@dataclass(frozen=True)
class Principal:
    """A caller identity proven by a verified access token.

    Built only by AuthService.verify_token(). Passing a Principal into a
    service method is the capability check: holding one means the token was
    signature-, issuer-, audience- and expiry-checked.
    """

    user_id: int
    email: str
    role: str
    token_id: str | None = None


@dataclass
class AuditEntry:
    """Input to AuditRecorder.log(). Mirrors one audit_logs row before insert."""

    action: str
    entity_type: str
    entity_id: int | None
    user_id: int | None
    ip_address: str | None = None
    user_agent: str | None = None
    previous_values: dict[str, Any] | None = None
    new_values: dict[str, Any] | None = None


@dataclass(frozen=True)
class AuditRecord:
    """Immutable audit fact as read back from the database.

    Records are never updated or deleted -- only inserted.
    """

    id: int
    action: str
    entity_type: str
    entity_id: int | None
    user_id: int | None
    created_at: str
    ip_address: str | None = None
    user_agent: str | None = None
    previous_values: dict[str, Any] | None = None
    new_values: dict[str, Any] | None = None


@dataclass
class LoginResult:
    """What a successful login hands back to the Endpoint Layer."""

    token: str
    refresh_token: str
    user: dict[str, Any]


@dataclass
class Profile:
    """The /me view: the user plus both directions of the supervisor relation."""

    user: dict[str, Any]
    supervisor: dict[str, Any] | None = None
    supervised_users: list[dict[str, Any]] = field(default_factory=list)
