"""OpenAPI customization for rate-limited operations.

Routes guarded by a limiter declare ``responses=RATE_LIMITED_RESPONSES``; the
schema patch then documents the ``X-RateLimit-*`` headers on their success
responses and adds tag metadata.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

RATE_LIMIT_HEADERS: Dict[str, Dict[str, Any]] = {
    "X-RateLimit-Limit": {
        "description": "Maximum requests admitted per window.",
        "schema": {"type": "integer"},
    },
    "X-RateLimit-Remaining": {
        "description": "Requests left in the current window.",
        "schema": {"type": "integer"},
    },
    "X-RateLimit-Reset": {
        "description": "UNIX time (seconds) at which the current window ends.",
        "schema": {"type": "integer"},
    },
}

RETRY_AFTER_HEADER: Dict[str, Any] = {
    "description": "Seconds to wait before the window rolls over.",
    "schema": {"type": "integer"},
}

RATE_LIMITED_RESPONSES: Dict[int | str, Dict[str, Any]] = {
    429: {
        "description": "Rate limit exceeded.",
        "headers": {**RATE_LIMIT_HEADERS, "Retry-After": RETRY_AFTER_HEADER},
    },
}

TAGS_METADATA = [
    {"name": "Health", "description": "Liveness checks. Never rate limited."},
    {"name": "Rate Limits", "description": "Inspect the configured limiters."},
    {"name": "Auth", "description": "Authentication entry points."},
]


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to document rate limiting.

    Operations that declare a 429 response get the quota headers on each of
    their 2xx responses.

    Args:
        app: Application whose schema should be patched.
    """

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema

        schema = original_openapi()

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        for tag in TAGS_METADATA:
            if tag["name"] not in existing_tag_names:
                tags.append(tag)

        for methods in schema.get("paths", {}).values():
            for operation in methods.values():
                if not isinstance(operation, dict):
                    continue
                responses = operation.get("responses", {})
                if "429" not in responses:
                    continue
                for status_code, response in responses.items():
                    if str(status_code).startswith("2"):
                        response.setdefault("headers", {}).update(RATE_LIMIT_HEADERS)

        app.openapi_schema = schema
        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
