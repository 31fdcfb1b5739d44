"""
auth/tokens.py -- JWT issuance/verification and password hashing.

Security design decisions:
  JWT: python-jose with HS256. Every token carries iat (second resolution),
       a fresh jti (uuid4), and the configured iss/aud claims, all checked on
       verification. Expiry is fixed at issue time; a longer session needs a
       new token. There is no server-side revocation list: expiry is the only
       termination mechanism.

  Passwords: bcrypt used directly (no passlib wrapper), cost factor from
       Settings.bcrypt_rounds (default 12). dummy_hash() provides a hash of
       the same cost for timing equalization when the email is unknown [C1].

  SECRET_KEY: owned by core.config.Settings, which refuses to start in
       production without one. TokenIssuer receives it explicitly; nothing
       in this module reads configuration on import.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
import time
import uuid
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt
from jose.exceptions import JOSEError

from auth.errors import SigningError, TokenExpired, TokenInvalid, ValidationError
from core.config import Settings

logger = logging.getLogger("cra.auth")

_ALGORITHM = "HS256"
_REQUIRED_CLAIMS = ("userId", "email", "role")
_BCRYPT_MAX_BYTES = 72
TOKEN_TYPE_REFRESH = "refresh"

# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage)
# ---------------------------------------------------------------------------


def hash_password(plain: str, rounds: int = 12) -> str:
    """Return a salted bcrypt hash of the given plaintext password.

    bcrypt only looks at the first 72 bytes and recent releases refuse longer
    input outright, so the limit is enforced here with a typed error instead
    of letting a ValueError escape from the library.
    """
    encoded = plain.encode("utf-8")
    if len(encoded) > _BCRYPT_MAX_BYTES:
        raise ValidationError("Password must be at most 72 bytes long.")
    return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    bcrypt.checkpw compares in constant time. Over-long input or a corrupt
    stored hash make bcrypt raise ValueError; both count as a mismatch.
    """
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


@lru_cache(maxsize=8)
def dummy_hash(rounds: int) -> str:
    """Hash of a throwaway secret at the given cost, computed once per cost.

    Verified against when the email is unknown so that response time does not
    reveal whether an account exists [C1].
    """
    return hash_password("cra_timing_dummy", rounds)


# ---------------------------------------------------------------------------
# Token issuer
# ---------------------------------------------------------------------------


class TokenIssuer:
    """Signs and verifies session tokens.

    Usage:
        issuer = TokenIssuer.from_settings(settings)
        token = issuer.issue({"userId": 1, "email": "a@x.org", "role": "CHERCHEUR"})
        claims = issuer.verify(token)
    """

    def __init__(
        self,
        secret: str,
        *,
        issuer: str,
        audience: str,
        expires_in: int = 7 * 24 * 3600,
        refresh_expires_in: int = 30 * 24 * 3600,
    ) -> None:
        if not secret:
            raise SigningError("Token signing secret is not configured.")
        self._secret = secret
        self.issuer = issuer
        self.audience = audience
        self.expires_in = expires_in
        self.refresh_expires_in = refresh_expires_in

    @classmethod
    def from_settings(cls, settings: Settings) -> TokenIssuer:
        return cls(
            settings.secret_key,
            issuer=settings.jwt_issuer,
            audience=settings.jwt_audience,
            expires_in=settings.jwt_expires_in,
            refresh_expires_in=settings.jwt_refresh_expires_in,
        )

    def issue(self, payload: dict[str, Any], expires_in: int | None = None) -> str:
        """Sign an access token for payload (must hold userId, email, role).

        Args:
            payload:    Identity claims. Extra keys are carried through as-is.
            expires_in: Lifetime in seconds. Defaults to the configured
                        access-token lifetime.
        """
        missing = [name for name in _REQUIRED_CLAIMS if payload.get(name) in (None, "")]
        if missing:
            raise SigningError(f"Token payload is missing required claims: {', '.join(missing)}.")
        return self._sign(payload, self.expires_in if expires_in is None else expires_in)

    def issue_refresh(self, user_id: int) -> str:
        """Sign a refresh token. It carries only the user id and a type marker."""
        return self._sign({"userId": user_id, "type": TOKEN_TYPE_REFRESH}, self.refresh_expires_in)

    def verify(self, token: str) -> dict[str, Any]:
        """Check signature, issuer, audience and expiry; return the claims.

        Raises TokenExpired when only the expiry check fails, TokenInvalid for
        every other problem (bad signature, wrong iss/aud, malformed token).
        """
        try:
            return jwt.decode(
                token,
                self._secret,
                algorithms=[_ALGORITHM],
                audience=self.audience,
                issuer=self.issuer,
            )
        except ExpiredSignatureError as exc:
            raise TokenExpired() from exc
        except JWTError as exc:
            raise TokenInvalid() from exc

    def decode(self, token: str) -> dict[str, Any]:
        """Structural decode WITHOUT signature verification.

        For inspection only (e.g. reading exp). Never base an authorization
        decision on the result -- use verify().
        """
        try:
            return {
                "header": jwt.get_unverified_header(token),
                "payload": jwt.get_unverified_claims(token),
            }
        except JWTError as exc:
            raise TokenInvalid("Malformed token.") from exc

    def get_expiration(self, token: str) -> datetime:
        exp = self.decode(token)["payload"].get("exp")
        if not isinstance(exp, (int, float)):
            raise TokenInvalid("Token has no expiry claim.")
        return datetime.fromtimestamp(exp, tz=timezone.utc)

    def is_expired(self, token: str) -> bool:
        """True if the token's expiry has passed. Undecodable tokens count as expired."""
        try:
            return datetime.now(timezone.utc) >= self.get_expiration(token)
        except TokenInvalid:
            return True

    def _sign(self, payload: dict[str, Any], expires_in: int) -> str:
        now = int(time.time())
        claims = {
            **payload,
            "iat": now,
            "jti": str(uuid.uuid4()),
            "iss": self.issuer,
            "aud": self.audience,
            "exp": now + expires_in,
        }
        try:
            return jwt.encode(claims, self._secret, algorithm=_ALGORITHM)
        except JOSEError as exc:
            logger.error("Token signing failed: %s", exc)
            raise SigningError() from exc
