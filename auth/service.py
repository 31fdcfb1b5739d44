"""
auth/service.py -- Login, registration, password change and token checks.

AuthService is the only place where the credential store, the token issuer
and the audit recorder meet. It holds no mutable state of its own, so a single
instance is shared by every request thread.

Failure policy:
  - Business-rule failures raise the typed errors in auth/errors.py.
  - Any SQLAlchemyError from the store is re-raised as StorageError with the
    original exception chained.
  - Audit writes follow AuditRecorder's policy (best-effort unless strict).
  - Login failures are coalesced into LoginFailed [C1]; see login().

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import NoReturn

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.audit import AuditRecorder
from auth.errors import (
    AuthError,
    Deactivated,
    DuplicateEmail,
    InvalidCredential,
    LoginFailed,
    NotFound,
    PermissionDenied,
    StorageError,
    TokenInvalid,
    ValidationError,
)
from auth.models import (
    ACTION_CREATE,
    ACTION_LOGIN,
    ACTION_UPDATE,
    ENTITY_USER,
    ROLES,
    USER_ADMIN_ROLES,
    AuditEntry,
    LoginResult,
    NewUser,
    Principal,
    Profile,
    User,
)
from auth.store import UserStore
from auth.tokens import TOKEN_TYPE_REFRESH, TokenIssuer, dummy_hash, hash_password, verify_password

logger = logging.getLogger("cra.auth")


@contextmanager
def _storage() -> Iterator[None]:
    """Translate persistence faults into StorageError."""
    try:
        yield
    except SQLAlchemyError as exc:
        logger.error("Storage failure: %s", exc.__class__.__name__)
        raise StorageError() from exc


class AuthService:
    """Orchestrates the auth use cases against store, issuer and recorder.

    Usage:
        service = AuthService(store, issuer, AuditRecorder(store), bcrypt_rounds=12)
        result = service.login("a@x.org", "Secret123!", ip_address="10.0.0.1")
        principal = service.verify_token(result.token)
    """

    def __init__(
        self,
        store: UserStore,
        issuer: TokenIssuer,
        recorder: AuditRecorder,
        *,
        bcrypt_rounds: int = 12,
    ) -> None:
        self.store = store
        self.issuer = issuer
        self.recorder = recorder
        self.bcrypt_rounds = bcrypt_rounds

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    def login(
        self,
        email: str,
        password: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> LoginResult:
        """Authenticate by email + password and issue tokens.

        bcrypt runs on every path, including unknown emails (against a dummy
        hash of the same cost), so response time does not reveal whether the
        account exists. The password is checked before the active flag for
        the same reason, although Deactivated wins when both fail.

        Raises LoginFailed whose .reason is NotFound, Deactivated or
        InvalidCredential. The public message is the same for all three.
        """
        with _storage():
            user = self.store.get_by_email(email)

        if user is None or user.hashed_password is None:
            verify_password(password, dummy_hash(self.bcrypt_rounds))
            self._login_failed(email, NotFound())
        password_ok = verify_password(password, user.hashed_password)
        if not user.is_active:
            self._login_failed(email, Deactivated())
        if not password_ok:
            self._login_failed(email, InvalidCredential("Incorrect password."))

        token = self.issuer.issue({"userId": user.id, "email": user.email, "role": user.role})
        refresh_token = self.issuer.issue_refresh(user.id)

        with _storage():
            self.store.update_last_login(user.id)
            user = self.store.get_by_id(user.id) or user

        self.recorder.log(
            AuditEntry(
                action=ACTION_LOGIN,
                entity_type=ENTITY_USER,
                entity_id=user.id,
                user_id=user.id,
                ip_address=ip_address,
                user_agent=user_agent,
            )
        )
        logger.info("Login succeeded for user=%s", user.id)
        return LoginResult(token=token, refresh_token=refresh_token, user=user.public())

    def _login_failed(self, email: str, reason: AuthError) -> NoReturn:
        # No audit row for failed attempts; the log line is the forensic trail.
        logger.warning("Login failed for %s (%s)", email, reason.code)
        raise LoginFailed(reason) from reason

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, data: NewUser, creator: Principal) -> dict:
        """Create a user on behalf of creator and return it without password.

        creator must come from verify_token(); its role must be in
        USER_ADMIN_ROLES. A duplicate email fails before any write.
        """
        if creator.role not in USER_ADMIN_ROLES:
            logger.warning("User %s (role=%s) attempted to register a user", creator.user_id, creator.role)
            raise PermissionDenied("Only administrators can create users.")
        if data.role not in ROLES:
            raise ValidationError(f"Unknown role {data.role!r}. Expected one of: {', '.join(ROLES)}.")

        with _storage():
            if self.store.get_by_email(data.email) is not None:
                raise DuplicateEmail()
            if data.supervisor_id is not None and self.store.get_by_id(data.supervisor_id) is None:
                raise ValidationError("Supervisor does not exist.")

        new_user = User(
            email=data.email,
            role=data.role,
            first_name=data.first_name,
            last_name=data.last_name,
            phone=data.phone,
            supervisor_id=data.supervisor_id,
            hashed_password=hash_password(data.password, self.bcrypt_rounds),
        )
        try:
            user_id = self.store.create_user(new_user)
        except IntegrityError as exc:
            # A concurrent registration won the race on the UNIQUE(email) index.
            raise DuplicateEmail() from exc
        except SQLAlchemyError as exc:
            raise StorageError() from exc

        with _storage():
            created = self.store.get_by_id(user_id)
        if created is None:
            raise StorageError("User not found after write.")

        self.recorder.log(
            AuditEntry(
                action=ACTION_CREATE,
                entity_type=ENTITY_USER,
                entity_id=created.id,
                user_id=creator.user_id,
                new_values={"email": created.email, "role": created.role},
            )
        )
        logger.info("User %s created by user=%s", created.id, creator.user_id)
        return created.public()

    # ------------------------------------------------------------------
    # Password change
    # ------------------------------------------------------------------

    def change_password(
        self,
        user_id: int,
        current_password: str,
        new_password: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> dict:
        """Replace the user's password after checking the current one."""
        with _storage():
            user = self.store.get_by_id(user_id)
        if user is None:
            raise NotFound()
        if user.hashed_password is None or not verify_password(current_password, user.hashed_password):
            raise InvalidCredential()

        hashed = hash_password(new_password, self.bcrypt_rounds)
        with _storage():
            if not self.store.update_password(user_id, hashed):
                raise NotFound()

        self.recorder.log(
            AuditEntry(
                action=ACTION_UPDATE,
                entity_type=ENTITY_USER,
                entity_id=user_id,
                user_id=user_id,
                ip_address=ip_address,
                user_agent=user_agent,
                new_values={"passwordChanged": True},
            )
        )
        logger.info("Password changed for user=%s", user_id)
        return {"message": "Password changed successfully."}

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    def verify_token(self, token: str) -> Principal:
        """Verify an access token and return the caller identity.

        Raises TokenExpired or TokenInvalid. Refresh tokens are not accepted
        as access credentials.
        """
        claims = self.issuer.verify(token)
        if claims.get("type") == TOKEN_TYPE_REFRESH:
            raise TokenInvalid("Refresh tokens cannot be used for authentication.")
        user_id = claims.get("userId")
        if not isinstance(user_id, int) or not claims.get("role"):
            raise TokenInvalid()
        return Principal(user_id=user_id, email=claims.get("email", ""), role=claims["role"], token_id=claims.get("jti"))

    def authenticate(self, token: str) -> Principal:
        """Verify an access token against the current state of its user.

        The role and email come from the stored user, not from the token, so
        a demotion or deactivation applies to tokens already issued.
        """
        claimed = self.verify_token(token)
        with _storage():
            user = self.store.get_by_id(claimed.user_id)
        if user is None or not user.is_active:
            raise TokenInvalid("Unknown or inactive user.")
        return Principal(user_id=user.id, email=user.email, role=user.role, token_id=claimed.token_id)

    def refresh(self, refresh_token: str) -> str:
        """Exchange a valid refresh token for a new access token.

        The user is re-read so role changes and deactivation take effect at
        the next refresh.
        """
        claims = self.issuer.verify(refresh_token)
        if claims.get("type") != TOKEN_TYPE_REFRESH:
            raise TokenInvalid("Not a refresh token.")
        with _storage():
            user = self.store.get_by_id(claims.get("userId"))
        if user is None or not user.is_active:
            raise TokenInvalid("Unknown or inactive user.")
        return self.issuer.issue({"userId": user.id, "email": user.email, "role": user.role})

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------

    def get_profile(self, user_id: int) -> Profile:
        with _storage():
            user = self.store.get_by_id(user_id)
            if user is None:
                raise NotFound()
            supervisor = self.store.get_by_id(user.supervisor_id) if user.supervisor_id is not None else None
            supervised = self.store.list_supervised(user_id)
        return Profile(
            user=user.public(),
            supervisor=supervisor.summary() if supervisor else None,
            supervised_users=[u.summary() for u in supervised],
        )
