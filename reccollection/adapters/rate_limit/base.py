"""Rate limiter interfaces and value types.

The HTTP layer depends on these abstractions (not the concrete store) so the
storage backend can be swapped later with minimal changes.

All timestamps are integer milliseconds since the UNIX epoch.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from reccollection.core.errors import ConfigurationAppError


@dataclass(frozen=True)
class LimiterPolicy:
    """Immutable configuration bound to one limiter installation.

    Attributes:
        window_ms: Length of the counting window in milliseconds.
        max_requests: Inclusive cap of admitted requests per window.
        message: Human-readable body returned on rejection.
        status_code: HTTP status used for rejections.
        name: Label used in logs and the introspection routes.

    Raises:
        ConfigurationAppError: On construction, if any value is missing or
            out of range.
    """

    window_ms: int
    max_requests: int
    message: str
    status_code: int = 429
    name: str = "default"

    def __post_init__(self) -> None:
        _require_positive_int("window_ms", self.window_ms)
        _require_positive_int("max_requests", self.max_requests)
        if not isinstance(self.message, str) or not self.message.strip():
            raise ConfigurationAppError(
                code="invalid_rate_limit_policy",
                message="message must be a non-empty string",
                details={"field": "message", "limiter": str(self.name)},
            )
        if (
            isinstance(self.status_code, bool)
            or not isinstance(self.status_code, int)
            or not 400 <= self.status_code <= 599
        ):
            raise ConfigurationAppError(
                code="invalid_rate_limit_policy",
                message="status_code must be an HTTP error status (400-599)",
                details={
                    "field": "status_code",
                    "actual_value": self.status_code,
                    "limiter": str(self.name),
                },
            )
        if not self.name:
            raise ConfigurationAppError(
                code="invalid_rate_limit_policy",
                message="name must be a non-empty string",
                details={"field": "name"},
            )


def _require_positive_int(field: str, value: object) -> None:
    # bool is an int subclass; True must not pass as a window of 1ms
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ConfigurationAppError(
            code="invalid_rate_limit_policy",
            message=f"{field} must be an integer >= 1",
            details={"field": field, "actual_value": value},
        )


@dataclass(frozen=True)
class WindowRecord:
    """Snapshot of one key's counting window.

    ``reset_at`` is always ``window_start + window_ms`` of the policy that
    opened the window.
    """

    count: int
    window_start: int
    reset_at: int

    def is_expired(self, now: int) -> bool:
        return now >= self.reset_at


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of one evaluation.

    Attributes:
        allowed: Whether the request may proceed.
        limit: Max requests per window.
        remaining: Requests left in the current window, floored at 0.
        reset_at: Window end in whole epoch seconds, rounded up.
        retry_after_seconds: Seconds until the window rolls over; set only
            when blocked.
        count: Requests observed in the window, including this one.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at: int
    retry_after_seconds: int | None
    count: int

    def headers(self, *, include_retry_after: bool = True) -> dict[str, str]:
        """Build the ``X-RateLimit-*`` header set for this result."""
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset_at),
        }
        if include_retry_after and self.retry_after_seconds is not None:
            headers["Retry-After"] = str(self.retry_after_seconds)
        return headers


def ms_to_ceil_seconds(value_ms: int) -> int:
    """Convert milliseconds to whole seconds, rounding up."""
    return -(-value_ms // 1000)


class AbstractWindowStore(ABC):
    """Interface for the key -> window record mapping.

    Implementations must make :meth:`hit` atomic per key and must never let
    :meth:`sweep` observe a partially updated record.
    """

    @abstractmethod
    def hit(self, key: str, *, now: int, window_ms: int) -> WindowRecord:
        """Count one request for ``key`` and return the updated record.

        Opens a fresh window (``count`` starting at 0, ``reset_at`` at
        ``now + window_ms``) when the key is absent or its window expired.
        """
        raise NotImplementedError

    @abstractmethod
    def get(self, key: str) -> WindowRecord | None:
        raise NotImplementedError

    @abstractmethod
    def sweep(self, now: int) -> int:
        """Delete records with ``reset_at < now``; return how many were removed."""
        raise NotImplementedError

    @abstractmethod
    def clear(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def __len__(self) -> int:
        raise NotImplementedError


class AbstractRateLimiter(ABC):
    """Interface for rate limiters."""

    policy: LimiterPolicy

    @abstractmethod
    def consume(self, key: str) -> RateLimitResult:
        """Count one request for ``key`` and decide whether it is admitted.

        Args:
            key: Unique identifier (client + route).

        Returns:
            RateLimitResult describing the decision and header values.
        """
        raise NotImplementedError
