"""
API request and response models for the CRA Saint-Louis REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in auth/models.py, which own the
internal domain representation. Route handlers map between the two.

Wire format: JSON keys are camelCase (firstName, currentPassword, ...) to match
the web frontend. Python attributes stay snake_case; the alias generator does
the mapping in both directions and populate_by_name lets tests and internal
callers use either form.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"

# bcrypt only hashes the first 72 bytes; auth.tokens.hash_password enforces
# the byte limit, this is the character-level guard.
PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 72


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class RoleEnum(str, Enum):
    ADMINISTRATEUR = "ADMINISTRATEUR"
    CHERCHEUR = "CHERCHEUR"
    ASSISTANT_CHERCHEUR = "ASSISTANT_CHERCHEUR"
    TECHNICIEN_SUPERIEUR = "TECHNICIEN_SUPERIEUR"


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class LoginRequest(_CamelModel):
    """Request body for POST /api/auth/login.

    The password is taken exactly as typed, like at registration.
    """

    email: str = Field(pattern=EMAIL_PATTERN, max_length=255)
    password: str = Field(min_length=1, max_length=255)


class RegisterRequest(_CamelModel):
    """Request body for POST /api/auth/register (administrators only)."""

    email: str = Field(pattern=EMAIL_PATTERN, max_length=255)
    password: str = Field(min_length=PASSWORD_MIN_LENGTH, max_length=PASSWORD_MAX_LENGTH)
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    role: RoleEnum
    phone: Optional[str] = Field(default=None, max_length=30)
    supervisor_id: Optional[int] = Field(default=None, ge=1)


class ChangePasswordRequest(_CamelModel):
    """Request body for POST /api/auth/change-password."""

    current_password: str = Field(min_length=1, max_length=255)
    new_password: str = Field(min_length=PASSWORD_MIN_LENGTH, max_length=PASSWORD_MAX_LENGTH)


class RefreshRequest(_CamelModel):
    """Request body for POST /api/auth/refresh."""

    refresh_token: str = Field(min_length=1)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserResponse(_CamelModel):
    """A user as exposed over HTTP. There is deliberately no password field."""

    id: int
    email: str
    first_name: str
    last_name: str
    role: str
    phone: Optional[str] = None
    is_active: bool
    supervisor_id: Optional[int] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    last_login: Optional[str] = None


class UserSummary(_CamelModel):
    id: int
    first_name: str
    last_name: str
    email: str
    role: str


class LoginResponse(_CamelModel):
    token: str
    refresh_token: str
    user: UserResponse


class RegisterResponse(_CamelModel):
    user: UserResponse


class TokenResponse(_CamelModel):
    token: str


class MessageResponse(_CamelModel):
    message: str


class MeResponse(_CamelModel):
    user: UserResponse
    supervisor: Optional[UserSummary] = None
    supervised_users: list[UserSummary] = Field(default_factory=list)


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[Any] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /health."""

    model_config = ConfigDict(frozen=True)

    status: str = "OK"
    timestamp: str
    service: str


class ApiIndexResponse(BaseModel):
    """Response for GET /api -- service banner and endpoint index."""

    success: bool = True
    message: str
    version: str
    endpoints: dict[str, str]
