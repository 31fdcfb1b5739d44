"""
api/main.py -- FastAPI application factory for the CRA Saint-Louis API.

Run with:      uvicorn asgi:app --reload
               python main.py serve

create_app(settings) builds a fresh application. Nothing here is created at
import time: the lifespan constructs the store, token issuer, audit recorder
and auth service from the Settings it was given and publishes them on
app.state; shutdown disposes the database engine.

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. log_requests          -- one access-log line per request
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from api.models import ApiIndexResponse, ErrorDetail, ErrorResponse, HealthResponse
from api.routes.auth import router as auth_router
from auth.audit import AuditRecorder
from auth.errors import AuthError
from auth.service import AuthService
from auth.store import UserStore
from auth.tokens import TokenIssuer
from core.config import Settings
from core.log import configure_logging

logger = logging.getLogger("cra.api")


def create_app(settings: Settings) -> FastAPI:
    """Build the ASGI application for the given settings."""
    configure_logging(settings)

    # ---------------------------------------------------------------------------
    # Lifespan -- startup / shutdown
    # ---------------------------------------------------------------------------

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Build the auth core on startup; release the DB engine on shutdown.

        Startup order matters: the recorder wraps the store, and the service
        needs store, issuer and recorder.
        """
        logger.info("%s starting up", settings.service_name)
        store = UserStore(settings.database_url)
        issuer = TokenIssuer.from_settings(settings)
        recorder = AuditRecorder(store, strict=settings.audit_strict)
        app.state.settings = settings
        app.state.user_store = store
        app.state.auth_service = AuthService(store, issuer, recorder, bcrypt_rounds=settings.bcrypt_rounds)
        if not store.has_users():
            logger.warning("No users exist yet. Create the first administrator with: python main.py create-admin")
        logger.info("Auth initialized (audit_strict=%s)", settings.audit_strict)

        yield

        store.close()
        logger.info("%s shutdown complete", settings.service_name)

    app = FastAPI(
        title=settings.service_name,
        description="Scientific-institute management platform -- authentication and audit trail.",
        version=settings.version,
        lifespan=lifespan,
    )

    # ---------------------------------------------------------------------------
    # Middleware stack
    #
    # add_middleware() wraps the existing stack, so the LAST registered
    # middleware is the outermost. Register innermost first.
    # ---------------------------------------------------------------------------

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        ms = (time.perf_counter() - start) * 1000
        logger.info(
            "%s %s %d %.1fms %s",
            request.method,
            request.url.path,
            response.status_code,
            ms,
            request.client.host if request.client else "unknown",
        )
        return response

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins(),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
        allow_headers=[
            "Origin",
            "X-Requested-With",
            "Content-Type",
            "Accept",
            "Authorization",
            "Cache-Control",
            "Pragma",
        ],
        expose_headers=["X-Total-Count", "X-Total-Pages", "X-Current-Page", "X-Per-Page"],
        max_age=86400,
    )

    app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.trusted_hosts())

    # ---------------------------------------------------------------------------
    # Router registration
    # ---------------------------------------------------------------------------

    app.include_router(auth_router, prefix="/api", tags=["Auth"])

    # ---------------------------------------------------------------------------
    # Exception handlers
    #
    # All handlers return the same ErrorResponse envelope so API clients can
    # parse errors uniformly without inspecting status codes to choose a schema.
    # ---------------------------------------------------------------------------

    @app.exception_handler(AuthError)
    async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
        """Render a typed auth failure with its own status and code.

        Server-side failures (5xx) are logged with the chained cause; the
        client only sees the public message.
        """
        if exc.status_code >= 500:
            logger.error("%s on %s %s", exc.code, request.method, request.url.path, exc_info=exc)
        headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(error=ErrorDetail(code=exc.code, message=exc.message)).model_dump(
                exclude_none=True
            ),
            headers=headers,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """Return 400 with a structured error when the request body fails validation.

        Submitted values are dropped from the error list so passwords never
        echo back in a response.
        """
        errors = [
            {"loc": list(e.get("loc", ())), "msg": e.get("msg", ""), "type": e.get("type", "")} for e in exc.errors()
        ]
        return JSONResponse(
            status_code=400,
            content=ErrorResponse(
                error=ErrorDetail(
                    code="validation_error",
                    message="Request validation failed.",
                    detail=errors,
                )
            ).model_dump(),
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        """Return a structured error for all FastAPI/Starlette HTTP exceptions.

        Route dependencies raise HTTPException with a dict detail. When detail
        is already structured, use it directly as the error field rather than
        stringifying it.
        """
        if isinstance(exc.detail, dict):
            return JSONResponse(
                status_code=exc.status_code,
                content={"error": exc.detail},
                headers=getattr(exc, "headers", None),
            )
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(
                error=ErrorDetail(
                    code=f"http_{exc.status_code}",
                    message=str(exc.detail),
                )
            ).model_dump(exclude_none=True),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all handler for unexpected server errors.

        The raw exception goes to the log only, never to the response body.
        """
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(
                error=ErrorDetail(
                    code="internal_error",
                    message="An unexpected error occurred.",
                )
            ).model_dump(exclude_none=True),
        )

    # ---------------------------------------------------------------------------
    # Service endpoints
    #
    # No authentication: load balancers and the frontend bootstrap call these.
    # ---------------------------------------------------------------------------

    @app.get("/health", tags=["Health"])
    async def health() -> HealthResponse:
        """Return liveness, server time and service name."""
        return HealthResponse(timestamp=datetime.now(timezone.utc).isoformat(), service=settings.service_name)

    @app.get("/api", tags=["Health"])
    async def api_index() -> ApiIndexResponse:
        """Return the service banner and the index of mounted endpoint groups."""
        return ApiIndexResponse(
            message=f"{settings.service_name} - scientific management platform",
            version=settings.version,
            endpoints={"auth": "/api/auth"},
        )

    return app
