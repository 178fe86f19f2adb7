"""Tests for log redaction and request correlation."""

from __future__ import annotations

import json
import logging
from io import StringIO

import pytest

from reccollection.core.logging import (
    JsonFormatter,
    RequestIdFilter,
    SensitiveDataFilter,
    clear_request_id,
    hash_identifier,
    set_request_id,
)


@pytest.fixture
def capture() -> tuple[logging.Logger, StringIO]:
    logger = logging.getLogger("test_reccollection_logging")
    logger.setLevel(logging.INFO)
    logger.handlers.clear()
    logger.propagate = False

    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(SensitiveDataFilter())
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)
    return logger, stream


def _last_line(stream: StringIO) -> dict:
    return json.loads(stream.getvalue().strip().splitlines()[-1])


def test_client_addresses_are_redacted(capture) -> None:
    logger, stream = capture

    logger.warning(
        "rate_limit.exceeded",
        extra={"client_ip": "1.2.3.4", "x-forwarded-for": "1.2.3.4", "limiter": "auth"},
    )

    output = stream.getvalue()
    assert "1.2.3.4" not in output
    payload = _last_line(stream)
    assert payload["client_ip"] == "[REDACTED]"
    assert payload["limiter"] == "auth"
    assert payload["message"] == "rate_limit.exceeded"
    assert payload["level"] == "warning"


def test_nested_headers_are_redacted(capture) -> None:
    logger, stream = capture

    logger.info(
        "request.headers",
        extra={"headers": {"Authorization": "Bearer abc", "user-agent": "pytest"}},
    )

    payload = _last_line(stream)
    assert payload["headers"]["Authorization"] == "[REDACTED]"
    assert payload["headers"]["user-agent"] == "pytest"


def test_safe_fields_pass_through(capture) -> None:
    logger, stream = capture

    logger.info(
        "rate_limit.allowed",
        extra={"key_hash": "abc123", "remaining": 3, "window_ms": 60000},
    )

    payload = _last_line(stream)
    assert payload["key_hash"] == "abc123"
    assert payload["remaining"] == 3
    assert "[REDACTED]" not in stream.getvalue()


def test_request_id_attached_from_context(capture) -> None:
    logger, stream = capture

    set_request_id("req-42")
    try:
        logger.info("rate_limit.allowed")
    finally:
        clear_request_id()

    assert _last_line(stream)["request_id"] == "req-42"


def test_hash_identifier_is_stable_and_truncated() -> None:
    first = hash_identifier("1.2.3.4:/api/thing")

    assert first == hash_identifier("1.2.3.4:/api/thing")
    assert first != hash_identifier("1.2.3.5:/api/thing")
    assert len(first) == 16
    assert "1.2.3.4" not in first
