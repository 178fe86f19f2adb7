from __future__ import annotations

from fastapi import APIRouter, Depends

from reccollection.core.openapi import RATE_LIMITED_RESPONSES
from reccollection.core.rate_limit import RateLimit
from reccollection.schemas.rate_limit import AuthAttemptResponse

router = APIRouter(tags=["Auth"])


@router.post(
    "/auth/attempts",
    response_model=AuthAttemptResponse,
    dependencies=[Depends(RateLimit(name="auth"))],
    responses=RATE_LIMITED_RESPONSES,
)
async def record_auth_attempt() -> AuthAttemptResponse:
    """Authentication entry point guarded by the ``auth`` limiter.

    Credential verification is handled by the identity service; this endpoint
    only admits or throttles the attempt.
    """

    return AuthAttemptResponse(accepted=True)
