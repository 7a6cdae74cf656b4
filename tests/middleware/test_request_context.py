"""Tests for the request context middleware.

Verifies that every response gets:
- An X-Request-ID header (generated or echoed from the request)
- One summary log line carrying the request context
"""

from __future__ import annotations

import logging
import uuid

import pytest
from fastapi.testclient import TestClient


def test_request_id_generated_when_not_provided(client: TestClient) -> None:
    resp = client.get("/health")
    req_id = resp.headers.get("x-request-id")
    assert req_id is not None
    uuid.UUID(req_id)  # raises ValueError if invalid


def test_request_id_echoed_when_provided(client: TestClient) -> None:
    custom_id = "my-custom-request-id-123"
    resp = client.get("/health", headers={"X-Request-ID": custom_id})
    assert resp.headers.get("x-request-id") == custom_id


def test_request_id_present_on_error_responses(oauth_client: TestClient) -> None:
    """Even error responses (401, 404) get an X-Request-ID header."""
    assert oauth_client.get("/memory/stats").headers.get("x-request-id")
    assert oauth_client.get("/no/such/route").headers.get("x-request-id")


def test_summary_line_carries_context(
    api_key_client: TestClient, api_key: str, caplog: pytest.LogCaptureFixture
) -> None:
    caplog.set_level(logging.INFO, logger="memory_wrapper.middleware.request_context")
    api_key_client.get(
        "/memory/stats", headers={"X-API-Key": api_key, "X-Request-ID": "req-42"}
    )
    [record] = [
        r
        for r in caplog.records
        if r.name == "memory_wrapper.middleware.request_context"
    ]
    assert record.request_id == "req-42"
    assert record.method == "GET"
    assert record.path == "/memory/stats"
    assert record.status_code == 200
    assert record.auth_method == "api_key"
    assert record.duration_ms >= 0


def test_log_records_inside_a_request_get_its_id(
    client: TestClient, caplog: pytest.LogCaptureFixture
) -> None:
    caplog.set_level(logging.INFO)
    client.post(
        "/memory/store", json={"content": "x"}, headers={"X-Request-ID": "req-7"}
    )
    stored = [r for r in caplog.records if r.getMessage().startswith("Stored memory")]
    assert stored
    assert stored[0].request_id == "req-7"
