"""
tests/test_health.py -- Integration tests for GET /health and GET /api.

Covers:
  - /health returns status, an ISO timestamp and the service name
  - /api returns the banner with the endpoint index
  - Neither requires authentication
  - Unknown paths return the structured error body
"""

from __future__ import annotations

from datetime import datetime


def test_health_returns_ok(api_client):
    client, _, _ = api_client
    resp = client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "OK"
    assert data["service"] == "CRA Saint-Louis API"
    assert datetime.fromisoformat(data["timestamp"]).tzinfo is not None


def test_health_no_auth_required(api_client):
    client, _, _ = api_client
    resp = client.get("/health", headers={})
    assert resp.status_code == 200


def test_api_index_lists_auth_endpoints(api_client):
    client, _, _ = api_client
    resp = client.get("/api")
    assert resp.status_code == 200
    data = resp.json()
    assert data["success"] is True
    assert data["version"] == "1.0.0"
    assert data["endpoints"] == {"auth": "/api/auth"}


def test_unknown_path_is_structured_404(api_client):
    client, _, _ = api_client
    resp = client.get("/api/does-not-exist")
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "http_404"
