"""Tests for environment-driven rate limit settings."""

import pytest
from pydantic import ValidationError

from reccollection.core.config import LogSettings, RateLimitSettings
from reccollection.core.rate_limit import build_default_registry


def test_rate_limit_settings_read_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RATE_LIMIT_WINDOW_MS", "1000")
    monkeypatch.setenv("RATE_LIMIT_MAX_REQUESTS", "7")
    monkeypatch.setenv("RATE_LIMIT_AUTH_MESSAGE", "Slow down, please")
    monkeypatch.setenv("RATE_LIMIT_INCLUDE_RETRY_AFTER", "false")

    cfg = RateLimitSettings()

    assert cfg.window_ms == 1000
    assert cfg.max_requests == 7
    assert cfg.auth_message == "Slow down, please"
    assert cfg.include_retry_after is False


@pytest.mark.parametrize(
    "env_name, value",
    [
        ("RATE_LIMIT_MAX_REQUESTS", "0"),
        ("RATE_LIMIT_WINDOW_MS", "-1"),
        ("RATE_LIMIT_STATUS_CODE", "302"),
        ("RATE_LIMIT_SWEEP_INTERVAL_SECONDS", "0"),
    ],
)
def test_out_of_range_settings_fail_at_startup(
    monkeypatch: pytest.MonkeyPatch, env_name: str, value: str
) -> None:
    monkeypatch.setenv(env_name, value)

    with pytest.raises(ValidationError):
        RateLimitSettings()


def test_registry_sweep_interval_comes_from_settings() -> None:
    registry = build_default_registry(RateLimitSettings(sweep_interval_seconds=5))

    assert registry.sweeper._interval == 5


def test_log_settings_defaults() -> None:
    cfg = LogSettings()

    assert cfg.request_id_header == "X-Request-ID"
    assert cfg.format in {"json", "plain"}
