"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Token transport is the Authorization: Bearer <token> header only. No cookie
session is part of this service.

get_current_principal() verifies the token through AuthService.authenticate()
which re-reads the user so that a deactivated or demoted account loses access
immediately, not only when its token expires. require_admin() checks that
stored role for POST /api/auth/register.

Token failures are raised as TokenExpired / TokenInvalid; the AuthError
handler in api/main.py turns them into 401 responses.

Layer rule: this module may import from fastapi because it is part of the
FastAPI dependency injection system. Nothing else in auth/ does.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.models import USER_ADMIN_ROLES, Principal
from auth.service import AuthService


def get_auth_service(request: Request) -> AuthService:
    """Return the AuthService built by the app lifespan."""
    return request.app.state.auth_service


def get_current_principal(request: Request) -> Principal:
    """Require a valid bearer token. Raises HTTP 401 if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(principal: Principal = Depends(get_current_principal)): ...
    """
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer ") or not auth_header[7:].strip():
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
            headers={"WWW-Authenticate": "Bearer"},
        )

    return get_auth_service(request).authenticate(auth_header[7:].strip())


def require_admin(request: Request) -> Principal:
    """Require a user-administration role. Raises HTTP 401 if unauthenticated, HTTP 403 if not allowed.

    Use as a FastAPI dependency:
        @router.post("/admin-only")
        def route(principal: Principal = Depends(require_admin)): ...
    """
    principal = get_current_principal(request)
    if principal.role not in USER_ADMIN_ROLES:
        raise HTTPException(
            status_code=403,
            detail={"code": "forbidden", "message": "Administrator access required."},
        )
    return principal
