"""Rate limiting for the HTTP layer.

This module wires the limiter adapters into FastAPI, either per route:

    @router.post("/login", dependencies=[Depends(RateLimit(name="auth"))])

or for a whole application:

    app.middleware("http")(rate_limit_middleware(limiter))

Each installation evaluates its own limiter; named limiters live in a
:class:`LimiterRegistry` stored on ``app.state.rate_limiters``, which also owns
the expiry sweeper.

Rate limiting strategy:
- Fixed window per client address and route path.
- Client address comes from X-Forwarded-For, then X-Real-IP, then the socket
  peer, then the shared "unknown" bucket.
"""

import logging
from typing import Awaitable, Callable, Iterator

from fastapi import HTTPException, Request, Response
from fastapi.responses import JSONResponse

from reccollection.adapters.rate_limit.base import (
    AbstractRateLimiter,
    AbstractWindowStore,
    LimiterPolicy,
    RateLimitResult,
)
from reccollection.adapters.rate_limit.in_memory import (
    FixedWindowRateLimiter,
    system_clock_ms,
)
from reccollection.adapters.rate_limit.sweeper import ExpirySweeper
from reccollection.core.config import RateLimitSettings, settings
from reccollection.core.errors import ConfigurationAppError, NotFoundAppError
from reccollection.core.logging import hash_identifier

logger = logging.getLogger(__name__)

UNKNOWN_CLIENT = "unknown"

CallNext = Callable[[Request], Awaitable[Response]]


def get_client_identifier(request: Request, *, trust_proxy_headers: bool = True) -> str:
    """Return the best available client address for the request.

    Args:
        request: Incoming request.
        trust_proxy_headers: Whether forwarding headers may be used.

    Returns:
        Client address, or ``"unknown"`` when nothing identifies the caller.
    """

    if trust_proxy_headers:
        for header in ("x-forwarded-for", "x-real-ip"):
            value = request.headers.get(header)
            if value:
                return value

    if request.client and request.client.host:
        return request.client.host

    return UNKNOWN_CLIENT


def build_rate_limit_key(request: Request, *, trust_proxy_headers: bool = True) -> str:
    """Build the limiter key ``"<client>:<path>"`` for the current request."""

    client = get_client_identifier(request, trust_proxy_headers=trust_proxy_headers)
    return f"{client}:{request.url.path}"


def get_rate_limit_settings(request: Request) -> RateLimitSettings:
    """Settings the application was built with, else the process-wide ones."""

    cfg: RateLimitSettings | None = getattr(request.app.state, "rate_limit_settings", None)
    return cfg if cfg is not None else settings.rate_limit


def _evaluate(
    limiter: AbstractRateLimiter,
    request: Request,
    *,
    trust_proxy_headers: bool,
) -> RateLimitResult:
    key = build_rate_limit_key(request, trust_proxy_headers=trust_proxy_headers)
    result = limiter.consume(key)

    log_extra = {
        "limiter": limiter.policy.name,
        "key_hash": hash_identifier(key),
        "path": request.url.path,
        "limit": result.limit,
        "remaining": result.remaining,
        "count": result.count,
        "window_ms": limiter.policy.window_ms,
    }
    if result.allowed:
        logger.debug("rate_limit.allowed", extra=log_extra)
    else:
        logger.warning(
            "rate_limit.exceeded",
            extra={**log_extra, "retry_after_s": result.retry_after_seconds},
        )
    return result


class RateLimit:
    """FastAPI dependency enforcing one limiter on the routes that declare it.

    Either bind a limiter directly or name one registered on
    ``app.state.rate_limiters``. Headers are attached to every evaluated
    response; a rejection raises ``HTTPException`` so the route never runs.
    """

    def __init__(
        self,
        limiter: AbstractRateLimiter | None = None,
        *,
        name: str | None = None,
        include_retry_after: bool | None = None,
        trust_proxy_headers: bool | None = None,
    ) -> None:
        if limiter is None and not name:
            raise ConfigurationAppError(
                code="invalid_rate_limit_dependency",
                message="RateLimit needs either a limiter or a registered limiter name",
            )
        self._limiter = limiter
        self._name = name
        self._include_retry_after = include_retry_after
        self._trust_proxy_headers = trust_proxy_headers

    def resolve(self, request: Request) -> AbstractRateLimiter:
        if self._limiter is not None:
            return self._limiter
        registry: LimiterRegistry | None = getattr(request.app.state, "rate_limiters", None)
        if registry is None:
            raise ConfigurationAppError(
                code="rate_limit_registry_missing",
                message="No limiter registry installed on the application",
                details={"limiter": str(self._name)},
            )
        return registry.get(str(self._name))

    async def __call__(self, request: Request, response: Response) -> RateLimitResult | None:
        cfg = get_rate_limit_settings(request)
        if not cfg.enabled:
            return None

        include_retry_after = (
            cfg.include_retry_after
            if self._include_retry_after is None
            else self._include_retry_after
        )
        trust_proxy_headers = (
            cfg.trust_proxy_headers
            if self._trust_proxy_headers is None
            else self._trust_proxy_headers
        )

        limiter = self.resolve(request)
        result = _evaluate(limiter, request, trust_proxy_headers=trust_proxy_headers)
        headers = result.headers(include_retry_after=include_retry_after)

        if result.allowed:
            response.headers.update(headers)
            return result

        raise HTTPException(
            status_code=limiter.policy.status_code,
            detail=limiter.policy.message,
            headers=headers,
        )


def rate_limit_middleware(
    limiter: AbstractRateLimiter,
    *,
    exempt_paths: tuple[str, ...] = ("/health",),
    include_retry_after: bool = True,
    trust_proxy_headers: bool = True,
) -> Callable[[Request, CallNext], Awaitable[Response]]:
    """Build an ``app.middleware("http")`` function applying ``limiter`` app-wide.

    Args:
        limiter: Limiter owned by this installation.
        exempt_paths: Paths that bypass evaluation entirely.
        include_retry_after: Populate Retry-After on rejections.
        trust_proxy_headers: Whether forwarding headers identify the client.

    Returns:
        Middleware coroutine function.
    """

    async def middleware(request: Request, call_next: CallNext) -> Response:
        if request.url.path in exempt_paths:
            return await call_next(request)

        result = _evaluate(limiter, request, trust_proxy_headers=trust_proxy_headers)
        headers = result.headers(include_retry_after=include_retry_after)

        if not result.allowed:
            return JSONResponse(
                status_code=limiter.policy.status_code,
                content={"detail": limiter.policy.message},
                headers=headers,
            )

        response = await call_next(request)
        # A route-level limiter already described the tighter bucket.
        for name, value in headers.items():
            response.headers.setdefault(name, value)
        return response

    return middleware


class LimiterRegistry:
    """Named limiters of one application plus the sweeper bounding their stores."""

    def __init__(
        self,
        *,
        sweep_interval_seconds: float = 60.0,
        clock: Callable[[], int] = system_clock_ms,
    ) -> None:
        self._clock = clock
        self._limiters: dict[str, FixedWindowRateLimiter] = {}
        self.sweeper = ExpirySweeper([], interval_seconds=sweep_interval_seconds, clock=clock)

    def __iter__(self) -> Iterator[FixedWindowRateLimiter]:
        return iter(self._limiters.values())

    def __len__(self) -> int:
        return len(self._limiters)

    def __contains__(self, name: object) -> bool:
        return name in self._limiters

    def register(
        self,
        policy: LimiterPolicy,
        *,
        store: AbstractWindowStore | None = None,
    ) -> FixedWindowRateLimiter:
        """Create a limiter for ``policy`` and track its store for sweeping.

        Raises:
            ConfigurationAppError: If a limiter with the same name exists.
        """
        if policy.name in self._limiters:
            raise ConfigurationAppError(
                code="duplicate_rate_limiter",
                message=f"A limiter named {policy.name!r} is already registered",
                details={"limiter": policy.name},
            )
        limiter = FixedWindowRateLimiter(policy, store=store, clock=self._clock)
        self._limiters[policy.name] = limiter
        self.sweeper.add_store(limiter.store)
        return limiter

    def get(self, name: str) -> FixedWindowRateLimiter:
        try:
            return self._limiters[name]
        except KeyError:
            raise NotFoundAppError(
                code="limiter_not_found",
                message=f"No rate limiter named {name!r}",
                details={"limiter": name},
            ) from None

    async def start(self) -> None:
        await self.sweeper.start()

    async def stop(self) -> None:
        await self.sweeper.stop()


def build_default_registry(
    rate_limit_settings: RateLimitSettings | None = None,
    *,
    clock: Callable[[], int] = system_clock_ms,
) -> LimiterRegistry:
    """Register the ``default``, ``read`` and ``auth`` limiters from settings.

    Raises:
        ConfigurationAppError: If any configured policy is invalid.
    """

    cfg = rate_limit_settings or settings.rate_limit
    registry = LimiterRegistry(sweep_interval_seconds=cfg.sweep_interval_seconds, clock=clock)

    registry.register(
        LimiterPolicy(
            name="default",
            window_ms=cfg.window_ms,
            max_requests=cfg.max_requests,
            message=cfg.message,
            status_code=cfg.status_code,
        )
    )
    registry.register(
        LimiterPolicy(
            name="read",
            window_ms=cfg.window_ms,
            max_requests=cfg.max_requests * cfg.read_multiplier,
            message=cfg.message,
            status_code=cfg.status_code,
        )
    )
    registry.register(
        LimiterPolicy(
            name="auth",
            window_ms=cfg.auth_window_ms,
            max_requests=cfg.auth_max_requests,
            message=cfg.auth_message,
            status_code=cfg.status_code,
        )
    )
    return registry
