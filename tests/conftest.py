from __future__ import annotations

import os

# Importing memory_wrapper.main builds the module-level app from the
# environment; keep that app off the real /data volume.
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("MEMORY_BACKEND", "memory")

import dataclasses  # noqa: E402
from collections.abc import Callable  # noqa: E402
from pathlib import Path  # noqa: E402
from urllib.parse import parse_qs, urlsplit  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from memory_wrapper.core.config import Settings  # noqa: E402
from memory_wrapper.main import create_app  # noqa: E402

TEST_API_KEY = "test-api-key-0123456789"
REDIRECT_URI = "http://localhost:3000/callback"


def _base_settings(data_dir: Path) -> Settings:
    return Settings(
        app_env="test",
        log_level="info",
        log_json=False,
        port=8080,
        oauth_enabled=False,
        oauth_secret_key="test-signing-secret-0123456789abcdef",
        access_token_ttl_min=60,
        auth_code_ttl_min=10,
        public_base_url=None,
        api_key_enabled=False,
        api_key=None,
        cors_enabled=False,
        data_dir=str(data_dir),
        memory_backend="memory",
        memory_service_url=None,
        memory_service_timeout=5.0,
    )


@pytest.fixture
def make_settings(tmp_path: Path) -> Callable[..., Settings]:
    """Settings for one test; keyword overrides replace individual fields."""

    def _make(**overrides) -> Settings:
        return dataclasses.replace(_base_settings(tmp_path), **overrides)

    return _make


@pytest.fixture
def make_client(make_settings) -> Callable[..., TestClient]:
    """A TestClient over a fresh app (fresh stores) built from overrides.

    Redirects are not followed: /oauth/authorize answers with a 302 whose
    Location carries the code.
    """

    def _make(**overrides) -> TestClient:
        return TestClient(create_app(make_settings(**overrides)), follow_redirects=False)

    return _make


@pytest.fixture
def client(make_client) -> TestClient:
    """No authentication configured: protected routes are open."""
    return make_client()


@pytest.fixture
def oauth_client(make_client) -> TestClient:
    return make_client(oauth_enabled=True)


@pytest.fixture
def api_key_client(make_client) -> TestClient:
    return make_client(api_key_enabled=True, api_key=TEST_API_KEY)


@pytest.fixture
def api_key() -> str:
    return TEST_API_KEY


@pytest.fixture
def redirect_uri() -> str:
    return REDIRECT_URI


@pytest.fixture
def register(redirect_uri) -> Callable[..., dict]:
    """POST /oauth/register and return the registration response body."""

    def _register(client: TestClient, **body) -> dict:
        payload = {"client_name": "Test", "redirect_uris": [redirect_uri], **body}
        resp = client.post("/oauth/register", json=payload)
        assert resp.status_code == 201, resp.text
        return resp.json()

    return _register


@pytest.fixture
def authorize(redirect_uri) -> Callable[..., str]:
    """Run GET /oauth/authorize for a registered client and return the code."""

    def _authorize(client: TestClient, client_id: str, **params) -> str:
        query = {
            "client_id": client_id,
            "response_type": "code",
            "redirect_uri": redirect_uri,
            **params,
        }
        resp = client.get("/oauth/authorize", params=query)
        assert resp.status_code == 302, resp.text
        return parse_qs(urlsplit(resp.headers["location"]).query)["code"][0]

    return _authorize


@pytest.fixture
def issue_token(register, authorize, redirect_uri) -> Callable[[TestClient], str]:
    """Register, authorize and exchange; return a bearer access token."""

    def _issue(client: TestClient) -> str:
        reg = register(client)
        code = authorize(client, reg["client_id"])
        resp = client.post(
            "/oauth/token",
            data={
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": redirect_uri,
                "client_id": reg["client_id"],
                "client_secret": reg["client_secret"],
            },
        )
        assert resp.status_code == 200, resp.text
        return resp.json()["access_token"]

    return _issue
