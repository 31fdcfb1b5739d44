"""
auth/errors.py -- Typed failures raised by the auth core.

Each class carries the machine-readable code, public message and HTTP status
the Endpoint Layer maps it to. api/main.py registers one exception handler for
AuthError and renders {"error": {"code", "message"}} from these attributes, so
routes never translate errors by hand.

Login failures are special: NotFound, Deactivated and InvalidCredential are
raised internally by the login path and then coalesced into LoginFailed, whose
message is identical for every cause (no account enumeration). The original
cause stays reachable on LoginFailed.reason for logs and tests.

Layer rule: no imports from api/.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for every failure the auth core raises on purpose."""

    code: str = "auth_error"
    status_code: int = 400
    default_message: str = "Authentication error."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AuthError):
    code = "validation_error"
    status_code = 400
    default_message = "Invalid data."


class NotFound(AuthError):
    code = "not_found"
    status_code = 404
    default_message = "User not found."


class Deactivated(AuthError):
    code = "account_deactivated"
    status_code = 403
    default_message = "Account is deactivated."


class InvalidCredential(AuthError):
    code = "invalid_credential"
    status_code = 400
    default_message = "Current password is incorrect."


class LoginFailed(AuthError):
    """Generic login failure. Same message whatever the underlying reason."""

    code = "invalid_credentials"
    status_code = 401
    default_message = "Invalid email or password."

    def __init__(self, reason: AuthError) -> None:
        super().__init__()
        self.reason = reason


class DuplicateEmail(AuthError):
    code = "duplicate_email"
    status_code = 400
    default_message = "A user with this email already exists."


class PermissionDenied(AuthError):
    code = "forbidden"
    status_code = 403
    default_message = "Insufficient privileges."


class TokenExpired(AuthError):
    code = "token_expired"
    status_code = 401
    default_message = "Token expired."


class TokenInvalid(AuthError):
    code = "token_invalid"
    status_code = 401
    default_message = "Invalid token."


class SigningError(AuthError):
    code = "signing_error"
    status_code = 500
    default_message = "Token could not be issued."


class StorageError(AuthError):
    code = "storage_error"
    status_code = 500
    default_message = "A storage error occurred."
