"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for the CRA Saint-Louis API happen here. No
module should call os.getenv() or os.environ.get() directly. The ASGI entry
point and the CLI call get_settings(); everything below them (token issuer,
stores, services, the FastAPI app factory) receives a Settings instance as an
explicit constructor argument.

Design patterns used:
  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. secret_key -> SECRET_KEY). Type coercion and validation are built in.

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved from environment. Used for the DEBUG-conditional secret
      policy: dev mode generates a key with a warning, production mode refuses
      to start without one.

  Singleton via lru_cache: get_settings() is kept only for the two process
      entry points (asgi.py, main.py). Tests build Settings(...) directly.

Security notes:
  [M6] SECRET_KEY shorter than 32 chars is rejected outright. JWT signing
       relies on key entropy -- a short key weakens every issued token.

  [M7] In production mode (DEBUG not set or false), a missing SECRET_KEY is a
       hard startup failure. Tokens signed with a random key would silently
       stop verifying after every restart.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
import secrets
from functools import lru_cache

from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("cra.config")

# Origins always accepted outside production (frontend dev servers).
_DEV_ORIGINS: tuple[str, ...] = (
    "http://localhost:3000",
    "http://localhost:3001",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:3001",
    "http://localhost:5173",
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file. The model_validator enforces
    production-safety rules at startup.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    service_name: str = "CRA Saint-Louis API"
    version: str = "1.0.0"
    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    # JWT_SECRET is accepted for deployments migrated from the Node backend.
    secret_key: str = Field(default="", validation_alias=AliasChoices("secret_key", "SECRET_KEY", "JWT_SECRET"))

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    jwt_expires_in: int = 7 * 24 * 3600  # access tokens: 7 days
    jwt_refresh_expires_in: int = 30 * 24 * 3600  # refresh tokens outlive access tokens
    jwt_issuer: str = "CRA-Saint-Louis"
    jwt_audience: str = "cra-users"

    # ------------------------------------------------------------------
    # Passwords
    # ------------------------------------------------------------------

    bcrypt_rounds: int = Field(default=12, ge=4, le=31)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    database_url: str = "sqlite:///cra_saint_louis.db"
    # Fail the primary operation when an audit write fails (compliance mode).
    audit_strict: bool = False

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    # Comma-separated list, e.g. "https://cra.example.org,https://admin.cra.example.org"
    allowed_origins: str = ""
    frontend_url: str = "http://localhost:5173"
    allowed_hosts: str = "*"

    # ------------------------------------------------------------------
    # Logging
    # ------------------------------------------------------------------

    log_level: str = "INFO"
    # Empty string disables file logging (console only).
    log_dir: str = ""

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce the SECRET_KEY policy [M7].

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Tokens will not survive a restart -- acceptable for local dev.

        Production mode (DEBUG=false or not set): refuse to start if
            SECRET_KEY is missing.

        Both modes: reject keys shorter than 32 characters [M6].
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(64)
                logger.warning("Using auto-generated SECRET_KEY. Issued tokens will not survive a restart.")
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY (or JWT_SECRET) in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    def cors_origins(self) -> list[str]:
        """Return the browser origins allowed by CORS.

        Production uses only the configured ALLOWED_ORIGINS (possibly none).
        Development merges the configured list with the local frontend dev
        servers, configured entries first, duplicates removed.
        """
        configured = _split_csv(self.allowed_origins)
        if not self.debug:
            return configured
        merged: list[str] = []
        for origin in [*configured, self.frontend_url, *_DEV_ORIGINS]:
            if origin and origin not in merged:
                merged.append(origin)
        return merged

    def trusted_hosts(self) -> list[str]:
        return _split_csv(self.allowed_hosts) or ["*"]


def _split_csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide Settings instance for entry points.

    Only asgi.py and main.py should call this. Library code takes Settings as
    a parameter so tests can build isolated instances.

    In tests: call get_settings.cache_clear() if you need to inject different
    environment variables.
    """
    return Settings()
