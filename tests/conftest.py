"""Pytest configuration and fixtures shared across all test modules.

This file is loaded by pytest before any test module, so the environment
below is in place before ``reccollection.core.config`` builds its settings.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"

os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("RATE_LIMIT_ENABLED", "true")
os.environ.setdefault("RATE_LIMIT_GLOBAL_ENABLED", "false")
os.environ.setdefault("RATE_LIMIT_MAX_REQUESTS", "5")
os.environ.setdefault("RATE_LIMIT_WINDOW_MS", "60000")

from unittest.mock import Mock  # noqa: E402

import pytest  # noqa: E402

from reccollection.adapters.rate_limit.base import LimiterPolicy  # noqa: E402


@pytest.fixture
def clock() -> Mock:
    """Deterministic epoch-millisecond clock; set ``return_value`` to advance."""
    return Mock(return_value=1_000_000)


@pytest.fixture
def scenario_policy() -> LimiterPolicy:
    return LimiterPolicy(window_ms=60_000, max_requests=2, message="Too many requests")
