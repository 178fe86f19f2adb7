"""HTTP middleware for request correlation and access logging.

Every response carries a correlation id and its processing time. Incoming ids
are echoed only when they look like an id (printable token characters, at
most 128 long); anything else is replaced so a client cannot inject text into
the logs. The id lives in a contextvar and on ``request.state.request_id``
while the request runs, so limiter and error logs share it.

Usage:
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import logging
import re
import time
import uuid

from fastapi import Request, Response

from reccollection.core.config import settings
from reccollection.core.logging import clear_request_id, set_request_id
from reccollection.core.rate_limit import get_rate_limit_settings

logger = logging.getLogger(__name__)

_REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9._:\-]{1,128}$")


def resolve_request_id(incoming: str | None) -> str:
    """Return ``incoming`` when it is a usable correlation id, else a new one."""

    if incoming and _REQUEST_ID_PATTERN.match(incoming):
        return incoming
    return uuid.uuid4().hex


async def request_id_middleware(request: Request, call_next) -> Response:
    """Tag the request with a correlation id, time it and log its outcome.

    Args:
        request: The incoming HTTP request object.
        call_next: The next middleware/route handler in the stack.

    Returns:
        Response: The downstream response with ``X-Request-ID`` (or the
            configured header) and ``X-Request-Duration-ms`` set.
    """

    header_name = settings.log.request_id_header
    request_id = resolve_request_id(request.headers.get(header_name))
    request.state.request_id = request_id
    set_request_id(request_id)
    started = time.perf_counter()
    try:
        response: Response = await call_next(request)
        duration_ms = (time.perf_counter() - started) * 1000
        logger.info(
            "request.completed",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": round(duration_ms, 2),
                "throttled": response.status_code == get_rate_limit_settings(request).status_code,
                "rate_limit_remaining": response.headers.get("X-RateLimit-Remaining"),
            },
        )
    finally:
        clear_request_id()

    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response
