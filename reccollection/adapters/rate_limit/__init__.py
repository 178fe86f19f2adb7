"""Rate limiting adapters.

This package keeps the window storage behind a small interface so the
in-memory store can later be replaced by Redis or another shared store
without changing the HTTP layer.
"""

from reccollection.adapters.rate_limit.base import (
    AbstractRateLimiter,
    AbstractWindowStore,
    LimiterPolicy,
    RateLimitResult,
    WindowRecord,
)
from reccollection.adapters.rate_limit.in_memory import (
    FixedWindowRateLimiter,
    InMemoryWindowStore,
    system_clock_ms,
)
from reccollection.adapters.rate_limit.sweeper import ExpirySweeper

__all__ = [
    "AbstractRateLimiter",
    "AbstractWindowStore",
    "ExpirySweeper",
    "FixedWindowRateLimiter",
    "InMemoryWindowStore",
    "LimiterPolicy",
    "RateLimitResult",
    "WindowRecord",
    "system_clock_ms",
]
