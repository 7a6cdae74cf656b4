"""Credentials handed out or presented over HTTP never reach the logs."""

from __future__ import annotations

import logging

import pytest


def test_oauth_flow_logs_no_secrets(
    make_client, register, authorize, redirect_uri, caplog: pytest.LogCaptureFixture
) -> None:
    caplog.set_level(logging.DEBUG)
    client = make_client(oauth_enabled=True)

    reg = register(client)
    code = authorize(client, reg["client_id"])
    token = client.post(
        "/oauth/token",
        data={
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": redirect_uri,
            "client_id": reg["client_id"],
            "client_secret": reg["client_secret"],
        },
    ).json()["access_token"]
    client.get("/memory/stats", headers={"Authorization": f"Bearer {token}"})

    # Replay and a bad secret exercise the warning paths too.
    client.post(
        "/oauth/token",
        data={
            "grant_type": "authorization_code",
            "code": code,
            "client_id": reg["client_id"],
            "client_secret": reg["client_secret"],
        },
    )
    client.get("/memory/stats", headers={"Authorization": f"Bearer {token}x"})

    text = caplog.text
    assert reg["client_id"] in text
    for secret in (reg["client_secret"], code, token):
        assert secret not in text


def test_api_key_is_not_logged(
    make_client, api_key: str, caplog: pytest.LogCaptureFixture
) -> None:
    caplog.set_level(logging.DEBUG)
    client = make_client(api_key_enabled=True, api_key=api_key)
    client.get("/memory/stats", headers={"X-API-Key": api_key})
    client.get("/memory/stats", headers={"X-API-Key": "wrong-key-value"})
    assert api_key not in caplog.text
    assert "wrong-key-value" not in caplog.text


def test_validation_errors_name_fields_not_values(
    make_client, caplog: pytest.LogCaptureFixture
) -> None:
    caplog.set_level(logging.DEBUG)
    client = make_client(oauth_enabled=True)
    resp = client.post(
        "/oauth/register",
        json={"client_name": "x", "redirect_uris": "super-secret-not-a-list"},
    )
    assert resp.status_code == 400
    assert "redirect_uris" in resp.json()["error_description"]
    assert "super-secret-not-a-list" not in resp.text
    assert "super-secret-not-a-list" not in caplog.text
