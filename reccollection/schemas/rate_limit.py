"""Pydantic schemas for limiter introspection responses."""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field

from reccollection.adapters.rate_limit.in_memory import FixedWindowRateLimiter


class LimiterInfo(BaseModel):
    """Configuration and current footprint of one registered limiter."""

    name: str = Field(..., description="Registered limiter name.")
    window_ms: int = Field(..., description="Window length in milliseconds.")
    max_requests: int = Field(..., description="Requests admitted per window.")
    status_code: int = Field(..., description="HTTP status used for rejections.")
    message: str = Field(..., description="Body returned on rejection.")
    tracked_keys: int = Field(
        ...,
        description="Client/route keys currently held in the window store (expired ones included until swept).",
    )

    @classmethod
    def from_limiter(cls, limiter: FixedWindowRateLimiter) -> "LimiterInfo":
        policy = limiter.policy
        return cls(
            name=policy.name,
            window_ms=policy.window_ms,
            max_requests=policy.max_requests,
            status_code=policy.status_code,
            message=policy.message,
            tracked_keys=len(limiter.store),
        )


class LimiterListResponse(BaseModel):
    limiters: List[LimiterInfo] = Field(default_factory=list)


class AuthAttemptResponse(BaseModel):
    accepted: bool = Field(True, description="Always true when the attempt was admitted.")
