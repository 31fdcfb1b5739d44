"""Unit tests for core/config.py -- secret policy, defaults and CORS origins.

Covers:
- Production mode refuses to start without SECRET_KEY
- Debug mode generates an ephemeral key
- Short keys are rejected in both modes
- JWT_SECRET is accepted as an alternative env var name
- Token and bcrypt defaults (7 days / 30 days / cost 12)
- CORS origin lists for production and development
"""

import pytest
from pydantic import ValidationError

from core.config import Settings

LONG_KEY = "k" * 48


def test_production_requires_secret_key():
    with pytest.raises(ValidationError, match="SECRET_KEY is required"):
        Settings(debug=False, secret_key="")


def test_debug_generates_ephemeral_secret():
    a = Settings(debug=True, secret_key="")
    b = Settings(debug=True, secret_key="")
    assert len(a.secret_key) >= 32
    assert a.secret_key != b.secret_key


@pytest.mark.parametrize("debug", [True, False])
def test_short_secret_rejected(debug):
    with pytest.raises(ValidationError, match="at least 32 characters"):
        Settings(debug=debug, secret_key="too-short")


def test_jwt_secret_env_var_is_accepted(monkeypatch):
    monkeypatch.delenv("SECRET_KEY", raising=False)
    monkeypatch.setenv("JWT_SECRET", "j" * 40)
    assert Settings(debug=False).secret_key == "j" * 40


def test_defaults():
    s = Settings(debug=False, secret_key=LONG_KEY)
    assert s.jwt_expires_in == 7 * 24 * 3600
    assert s.jwt_refresh_expires_in == 30 * 24 * 3600
    assert s.jwt_refresh_expires_in > s.jwt_expires_in
    assert s.jwt_issuer == "CRA-Saint-Louis"
    assert s.jwt_audience == "cra-users"
    assert s.bcrypt_rounds == 12
    assert s.audit_strict is False


def test_bcrypt_rounds_lower_bound():
    with pytest.raises(ValidationError):
        Settings(debug=True, secret_key=LONG_KEY, bcrypt_rounds=3)


def test_production_cors_uses_only_configured_origins():
    s = Settings(debug=False, secret_key=LONG_KEY, allowed_origins="https://cra.org, https://admin.cra.org")
    assert s.cors_origins() == ["https://cra.org", "https://admin.cra.org"]


def test_production_cors_empty_when_unconfigured():
    assert Settings(debug=False, secret_key=LONG_KEY, allowed_origins="").cors_origins() == []


def test_development_cors_merges_dev_servers():
    s = Settings(debug=True, secret_key=LONG_KEY, allowed_origins="https://cra.org,http://localhost:3000")
    origins = s.cors_origins()
    assert origins[0] == "https://cra.org"
    assert "http://localhost:5173" in origins
    assert origins.count("http://localhost:3000") == 1


def test_trusted_hosts_default_to_wildcard():
    assert Settings(debug=True, secret_key=LONG_KEY, allowed_hosts="").trusted_hosts() == ["*"]
    assert Settings(debug=True, secret_key=LONG_KEY, allowed_hosts="api.cra.org").trusted_hosts() == ["api.cra.org"]
