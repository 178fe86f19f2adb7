from __future__ import annotations

"""Application factory for the FastAPI app.

Centralizes app construction (limiters, lifespan, middleware, handlers,
routers) so tests can build isolated apps with their own limiter registry
and clock.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable

from fastapi import FastAPI

from reccollection.adapters.rate_limit.base import LimiterPolicy
from reccollection.adapters.rate_limit.in_memory import system_clock_ms
from reccollection.api.routes import auth_router, health_router, rate_limits_router
from reccollection.core.config import RateLimitSettings, settings
from reccollection.core.exception_handlers import setup_exception_handlers
from reccollection.core.logging import configure_logging
from reccollection.core.middleware import request_id_middleware
from reccollection.core.openapi import apply_openapi_customizations
from reccollection.core.rate_limit import (
    LimiterRegistry,
    build_default_registry,
    rate_limit_middleware,
)


def create_app(
    *,
    registry: LimiterRegistry | None = None,
    rate_limit_settings: RateLimitSettings | None = None,
    clock: Callable[[], int] = system_clock_ms,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        registry: Pre-built limiter registry; built from settings when omitted.
        rate_limit_settings: Overrides ``settings.rate_limit`` for the
            registry, the global limiter and every route dependency.
        clock: Time source (epoch milliseconds) for limiters built here.

    Returns:
        Configured FastAPI app.

    Raises:
        ConfigurationAppError: If any configured limiter policy is invalid.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    cfg = rate_limit_settings or settings.rate_limit
    limiters = registry or build_default_registry(cfg, clock=clock)

    global_limiter = None
    if cfg.global_enabled:
        global_limiter = limiters.register(
            LimiterPolicy(
                name="global",
                window_ms=cfg.window_ms,
                max_requests=cfg.max_requests,
                message=cfg.message,
                status_code=cfg.status_code,
            )
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await limiters.start()
        try:
            yield
        finally:
            await limiters.stop()

    app = FastAPI(
        title=settings.app.title,
        description=(
            "RecCollection API. Rate-limited routes report their quota through "
            "X-RateLimit-Limit, X-RateLimit-Remaining and X-RateLimit-Reset, "
            "and answer 429 with Retry-After once a client exceeds it."
        ),
        version="0.1.0",
        debug=settings.app.debug,
        lifespan=lifespan,
    )
    app.state.rate_limiters = limiters
    app.state.rate_limit_settings = cfg

    # Middleware: the last one added runs first, so request ids wrap everything
    if global_limiter is not None:
        app.middleware("http")(
            rate_limit_middleware(
                global_limiter,
                include_retry_after=cfg.include_retry_after,
                trust_proxy_headers=cfg.trust_proxy_headers,
            )
        )
    app.middleware("http")(request_id_middleware)

    setup_exception_handlers(app)

    app.include_router(rate_limits_router, prefix="/v1")
    app.include_router(auth_router, prefix="/v1")
    app.include_router(health_router)

    apply_openapi_customizations(app)

    return app
