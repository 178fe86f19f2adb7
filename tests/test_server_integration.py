"""Integration tests for rate limiting against a real HTTP server.

These tests start an actual Uvicorn server so the lifespan (sweeper task),
proxy headers and rejection responses are exercised over real sockets.
"""

import multiprocessing
import time
from typing import Generator

import httpx
import pytest
import uvicorn

from reccollection.core.config import settings


def run_server():
    """Run FastAPI server in a separate process."""
    uvicorn.run(
        "reccollection.main:app",
        host="127.0.0.1",
        port=8001,
        log_level="error",
        access_log=False,
    )


@pytest.fixture(scope="module")
def server() -> Generator[str, None, None]:
    """Start server in background process for integration tests."""
    process = multiprocessing.Process(target=run_server, daemon=True)
    process.start()

    base_url = "http://127.0.0.1:8001"
    for _ in range(50):
        try:
            response = httpx.get(f"{base_url}/health", timeout=1.0)
            if response.status_code == 200:
                break
        except (httpx.ConnectError, httpx.ReadTimeout):
            time.sleep(0.1)
    else:
        process.terminate()
        pytest.fail("Server failed to start")

    yield base_url

    process.terminate()
    process.join(timeout=5)


class TestServerIntegration:
    def test_default_limiter_over_http(self, server: str) -> None:
        headers = {"X-Forwarded-For": "198.51.100.1"}
        limit = settings.rate_limit.max_requests

        admitted = [
            httpx.get(f"{server}/v1/rate-limits/default", headers=headers, timeout=5.0)
            for _ in range(limit)
        ]
        rejected = httpx.get(f"{server}/v1/rate-limits/default", headers=headers, timeout=5.0)

        assert [r.status_code for r in admitted] == [200] * limit
        assert admitted[0].headers["X-RateLimit-Limit"] == str(limit)
        assert admitted[-1].headers["X-RateLimit-Remaining"] == "0"
        assert rejected.status_code == settings.rate_limit.status_code
        assert rejected.json() == {"detail": settings.rate_limit.message}
        assert int(rejected.headers["Retry-After"]) >= 1
        assert int(rejected.headers["X-RateLimit-Reset"]) >= int(time.time())

    def test_real_ip_header_isolates_clients(self, server: str) -> None:
        limit = settings.rate_limit.max_requests
        for _ in range(limit + 1):
            httpx.get(
                f"{server}/v1/rate-limits/default",
                headers={"X-Real-IP": "198.51.100.2"},
                timeout=5.0,
            )

        other = httpx.get(
            f"{server}/v1/rate-limits/default",
            headers={"X-Real-IP": "198.51.100.3"},
            timeout=5.0,
        )
        assert other.status_code == 200

    def test_health_is_not_limited(self, server: str) -> None:
        responses = [httpx.get(f"{server}/health", timeout=5.0) for _ in range(20)]

        assert all(r.status_code == 200 for r in responses)
