"""In-memory fixed-window rate limiter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: one lock guards the whole store, so lookup-increment-write is
  a single atomic step per request and sweeps never see a torn record.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable

from reccollection.adapters.rate_limit.base import (
    AbstractRateLimiter,
    AbstractWindowStore,
    LimiterPolicy,
    RateLimitResult,
    WindowRecord,
    ms_to_ceil_seconds,
)


def system_clock_ms() -> int:
    """Wall-clock time in integer milliseconds since the UNIX epoch."""
    return time.time_ns() // 1_000_000


@dataclass
class _WindowState:
    window_start: int
    reset_at: int
    count: int

    def snapshot(self) -> WindowRecord:
        return WindowRecord(
            count=self.count,
            window_start=self.window_start,
            reset_at=self.reset_at,
        )


class InMemoryWindowStore(AbstractWindowStore):
    """Dict-backed window store guarded by a single re-entrant lock."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._state_by_key: dict[str, _WindowState] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._state_by_key)

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return f"InMemoryWindowStore(keys={len(self)})"

    def hit(self, key: str, *, now: int, window_ms: int) -> WindowRecord:
        with self._lock:
            state = self._state_by_key.get(key)
            if state is None or now >= state.reset_at:
                # Expired windows are replaced, never rewound in place
                state = _WindowState(window_start=now, reset_at=now + window_ms, count=0)
                self._state_by_key[key] = state
            state.count += 1
            return state.snapshot()

    def get(self, key: str) -> WindowRecord | None:
        with self._lock:
            state = self._state_by_key.get(key)
            return state.snapshot() if state is not None else None

    def sweep(self, now: int) -> int:
        with self._lock:
            expired_keys = [k for k, s in self._state_by_key.items() if s.reset_at < now]
            for key in expired_keys:
                del self._state_by_key[key]
            return len(expired_keys)

    def clear(self) -> None:
        with self._lock:
            self._state_by_key.clear()


class FixedWindowRateLimiter(AbstractRateLimiter):
    """Rate limiter counting requests per key in fixed windows.

    A key's window opens on its first request and lasts ``policy.window_ms``.
    Every evaluation increments the counter, including rejected ones, so a
    client hammering a closed window stays rejected until it rolls over.
    Exactly ``policy.max_requests`` requests are admitted per window.
    """

    def __init__(
        self,
        policy: LimiterPolicy,
        *,
        store: AbstractWindowStore | None = None,
        clock: Callable[[], int] = system_clock_ms,
    ) -> None:
        """Initialize the limiter.

        Args:
            policy: Validated limiter policy.
            store: Window store to mutate; a private in-memory store is
                created when omitted.
            clock: Time source returning integer epoch milliseconds.
        """
        self.policy = policy
        self.store = store if store is not None else InMemoryWindowStore()
        self._clock = clock

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"FixedWindowRateLimiter(name={self.policy.name!r}, "
            f"window_ms={self.policy.window_ms}, max_requests={self.policy.max_requests})"
        )

    def now(self) -> int:
        return int(self._clock())

    def consume(self, key: str) -> RateLimitResult:
        """Count one request for ``key`` and evaluate it against the policy.

        Args:
            key: Unique identifier for rate limiting (client + route).

        Returns:
            RateLimitResult with the decision and header values.

        Raises:
            ValueError: If key is empty.
        """
        if not key:
            raise ValueError("key must be a non-empty string")

        now = self.now()
        record = self.store.hit(key, now=now, window_ms=self.policy.window_ms)

        limit = self.policy.max_requests
        allowed = record.count <= limit
        retry_after = None
        if not allowed:
            retry_after = max(1, ms_to_ceil_seconds(record.reset_at - now))

        return RateLimitResult(
            allowed=allowed,
            limit=limit,
            remaining=max(0, limit - record.count),
            reset_at=ms_to_ceil_seconds(record.reset_at),
            retry_after_seconds=retry_after,
            count=record.count,
        )
