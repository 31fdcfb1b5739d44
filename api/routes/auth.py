"""
api/routes/auth.py -- Authentication REST endpoints.

Routes:
  POST /api/auth/login            -- password login; returns access + refresh token
  POST /api/auth/register         -- create user (administrators only)
  POST /api/auth/change-password  -- change own password (requires auth)
  POST /api/auth/refresh          -- exchange refresh token for access token
  POST /api/auth/logout           -- stateless; client discards its token
  GET  /api/auth/me               -- current user, supervisor, supervised users

Security:
  [C1] Login failures surface as one generic 401 regardless of cause.
  [M5] Cache-Control: no-store on responses that carry tokens.
  Handlers are plain `def` so bcrypt work runs in the threadpool, not on the
  event loop.

Errors: service methods raise auth.errors types; the AuthError handler in
api/main.py renders them. Routes do not catch them.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from api.models import (
    ChangePasswordRequest,
    LoginRequest,
    LoginResponse,
    MeResponse,
    MessageResponse,
    RefreshRequest,
    RegisterRequest,
    RegisterResponse,
    TokenResponse,
)
from auth.dependencies import get_auth_service, get_current_principal, require_admin
from auth.models import NewUser, Principal
from auth.service import AuthService

# Auth policy:
# - POST /api/auth/login:            public
# - POST /api/auth/refresh:          public -- the refresh token is the credential
# - POST /api/auth/logout:           public -- nothing to revoke server-side
# - POST /api/auth/register:         requires admin (require_admin)
# - POST /api/auth/change-password:  requires auth (get_current_principal)
# - GET  /api/auth/me:               requires auth (get_current_principal)
router = APIRouter()


def _client_ip(request: Request) -> str | None:
    return request.client.host if request.client else None


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/login", response_model=LoginResponse)
def login(
    request: Request,
    response: Response,
    body: LoginRequest,
    service: AuthService = Depends(get_auth_service),
) -> LoginResponse:
    """Authenticate with email and password.

    Unknown email, deactivated account and wrong password all return the same
    401 "invalid_credentials" body.
    """
    result = service.login(
        body.email,
        body.password,
        ip_address=_client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )
    response.headers["Cache-Control"] = "no-store"  # [M5]
    return LoginResponse(token=result.token, refresh_token=result.refresh_token, user=result.user)


@router.post("/auth/refresh", response_model=TokenResponse)
def refresh(
    response: Response,
    body: RefreshRequest,
    service: AuthService = Depends(get_auth_service),
) -> TokenResponse:
    """Issue a new access token from a refresh token."""
    token = service.refresh(body.refresh_token)
    response.headers["Cache-Control"] = "no-store"  # [M5]
    return TokenResponse(token=token)


@router.post("/auth/logout", response_model=MessageResponse)
def logout() -> MessageResponse:
    """End the session. Tokens are stateless; the client discards its copy."""
    return MessageResponse(message="Logged out.")


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/register", response_model=RegisterResponse, status_code=201)
def register(
    body: RegisterRequest,
    creator: Principal = Depends(require_admin),
    service: AuthService = Depends(get_auth_service),
) -> RegisterResponse:
    """Create a user account. Administrators only."""
    user = service.register(
        NewUser(
            email=body.email,
            password=body.password,
            role=body.role.value,
            first_name=body.first_name,
            last_name=body.last_name,
            phone=body.phone,
            supervisor_id=body.supervisor_id,
        ),
        creator,
    )
    return RegisterResponse(user=user)


@router.post("/auth/change-password", response_model=MessageResponse)
def change_password(
    request: Request,
    body: ChangePasswordRequest,
    principal: Principal = Depends(get_current_principal),
    service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    """Change the caller's own password. The current password must match."""
    result = service.change_password(
        principal.user_id,
        body.current_password,
        body.new_password,
        ip_address=_client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )
    return MessageResponse(**result)


@router.get("/auth/me", response_model=MeResponse)
def me(
    principal: Principal = Depends(get_current_principal),
    service: AuthService = Depends(get_auth_service),
) -> MeResponse:
    """Return the current user with both sides of the supervisor relation."""
    profile = service.get_profile(principal.user_id)
    return MeResponse(
        user=profile.user,
        supervisor=profile.supervisor,
        supervised_users=profile.supervised_users,
    )
