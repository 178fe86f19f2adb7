from __future__ import annotations

import logging

import pytest
from fastapi.testclient import TestClient

from reccollection.core.config import settings
from reccollection.core.middleware import resolve_request_id
from reccollection.main import app


client = TestClient(app)


def test_preserves_incoming_request_id_header():
    incoming_id = "test-request-id-123"
    resp = client.get("/health", headers={"X-Request-ID": incoming_id})

    assert resp.status_code == 200
    assert resp.headers.get("X-Request-ID") == incoming_id


def test_generates_request_id_when_missing():
    resp = client.get("/health")

    assert resp.status_code == 200
    assert resp.headers.get("X-Request-ID")
    assert resp.headers.get("X-Request-Duration-ms") is not None


@pytest.mark.parametrize(
    "incoming",
    ["x" * 129, "spaces are not allowed", "line\tbreak", "semi;colon", ""],
)
def test_replaces_malformed_request_id(incoming: str):
    replaced = resolve_request_id(incoming)

    assert replaced != incoming
    assert len(replaced) == 32


def test_malformed_request_id_is_not_echoed():
    resp = client.get("/health", headers={"X-Request-ID": "forged id\"} injected"})

    assert resp.status_code == 200
    assert resp.headers["X-Request-ID"] != "forged id\"} injected"
    assert len(resp.headers["X-Request-ID"]) == 32


def test_rejected_requests_keep_request_id():
    headers = {"X-Request-ID": "throttled-1", "X-Forwarded-For": "203.0.113.9"}

    for _ in range(settings.rate_limit.max_requests):
        assert client.get("/v1/rate-limits/default", headers=headers).status_code == 200

    rejected = client.get("/v1/rate-limits/default", headers=headers)
    assert rejected.status_code == 429
    assert rejected.headers.get("X-Request-ID") == "throttled-1"


def test_completion_log_marks_throttled_requests(caplog: pytest.LogCaptureFixture):
    headers = {"X-Request-ID": "throttled-2", "X-Forwarded-For": "203.0.113.10"}
    caplog.set_level(logging.INFO, logger="reccollection.core.middleware")

    for _ in range(settings.rate_limit.max_requests + 1):
        client.get("/v1/rate-limits/default", headers=headers)

    completed = [r for r in caplog.records if r.getMessage() == "request.completed"]
    assert len(completed) == settings.rate_limit.max_requests + 1
    assert [r.throttled for r in completed] == [False] * settings.rate_limit.max_requests + [True]
    assert completed[-1].status_code == 429
    assert completed[-1].rate_limit_remaining == "0"
    assert completed[0].path == "/v1/rate-limits/default"
