from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from reccollection.core.openapi import RATE_LIMITED_RESPONSES
from reccollection.core.rate_limit import LimiterRegistry, RateLimit
from reccollection.schemas.rate_limit import LimiterInfo, LimiterListResponse

router = APIRouter(tags=["Rate Limits"])


def get_registry(request: Request) -> LimiterRegistry:
    return request.app.state.rate_limiters


@router.get(
    "/rate-limits",
    response_model=LimiterListResponse,
    dependencies=[Depends(RateLimit(name="read"))],
    responses=RATE_LIMITED_RESPONSES,
)
async def list_rate_limits(request: Request) -> LimiterListResponse:
    """List every registered limiter with its policy and tracked key count."""
    registry = get_registry(request)
    return LimiterListResponse(
        limiters=[LimiterInfo.from_limiter(limiter) for limiter in registry]
    )


@router.get(
    "/rate-limits/{name}",
    response_model=LimiterInfo,
    dependencies=[Depends(RateLimit(name="default"))],
    responses=RATE_LIMITED_RESPONSES,
)
async def get_rate_limit(name: str, request: Request) -> LimiterInfo:
    """Describe one limiter.

    Raises:
        NotFoundAppError: 404 when no limiter has that name.
    """
    return LimiterInfo.from_limiter(get_registry(request).get(name))
