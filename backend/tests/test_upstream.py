"""Unit tests for app.services.upstream client, retries and pacing.

The remote GIS API is replaced with ``httpx.MockTransport`` and every
sleep is recorded instead of awaited, so these tests never touch the
network or the wall clock. Coverage:
    - retry of HTTP 429 with linear backoff and the retries-exhausted error,
    - immediate failure on other statuses and transport errors,
    - query parameter passing and response size limits,
    - fixed-interval spacing enforced by RateLimiter.

See Also:
    - backend/app/services/upstream.py for implementation.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import httpx
import pytest

from app.core import config
from app.services import errors, upstream

if TYPE_CHECKING:
    from collections.abc import Callable


class RecordingSleep:
    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class FakeClock:
    """Monotonic clock that only moves when something sleeps on it."""

    def __init__(self) -> None:
        self.now = 100.0
        self.slept: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.slept.append(seconds)
        self.now += seconds


def _scripted(statuses: list[int], calls: list[httpx.Request]) -> Callable[
    [httpx.Request], httpx.Response
]:
    remaining = list(statuses)

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        status = remaining.pop(0)
        return httpx.Response(status, text=f'{{"status": {status}}}')

    return handler


def _client(
    handler: Callable[[httpx.Request], httpx.Response],
    sleep: RecordingSleep,
    **kwargs: object,
) -> upstream.GISApiClient:
    return upstream.GISApiClient(
        "http://gis.test",
        limiter=upstream.RateLimiter(0.0, sleep=sleep),
        sleep=sleep,
        transport=httpx.MockTransport(handler),
        **kwargs,  # type: ignore[arg-type]
    )


def test_retry_succeeds_after_rate_limits() -> None:
    """Test [429, 429, 200] with three attempts makes exactly three calls."""
    calls: list[httpx.Request] = []
    sleep = RecordingSleep()

    async def run() -> str:
        client = _client(
            _scripted([429, 429, 200], calls), sleep, max_attempts=3
        )
        try:
            return await client.fetch_with_retry("/api/v1/data/status")
        finally:
            await client.aclose()

    assert asyncio.run(run()) == '{"status": 200}'
    assert len(calls) == 3
    assert sleep.calls == [1.0, 2.0]


def test_retries_exhausted() -> None:
    """Test four 429s with three attempts fail after exactly three calls."""
    calls: list[httpx.Request] = []
    sleep = RecordingSleep()

    async def run() -> None:
        client = _client(
            _scripted([429, 429, 429, 429], calls), sleep, max_attempts=3
        )
        try:
            await client.fetch_with_retry("/api/v1/data/status")
        finally:
            await client.aclose()

    with pytest.raises(errors.RetriesExhaustedError) as exc_info:
        asyncio.run(run())
    assert len(calls) == 3
    assert exc_info.value.attempts == 3
    assert isinstance(exc_info.value.__cause__, errors.RateLimitedError)


def test_backoff_uses_configured_unit() -> None:
    """Test that backoff grows linearly with the configured unit."""
    calls: list[httpx.Request] = []
    sleep = RecordingSleep()

    async def run() -> None:
        client = _client(
            _scripted([429, 429, 429, 200], calls),
            sleep,
            max_attempts=4,
            backoff_seconds=0.25,
        )
        try:
            await client.fetch_with_retry("/x")
        finally:
            await client.aclose()

    asyncio.run(run())
    assert sleep.calls == [0.25, 0.5, 0.75]


def test_other_errors_are_not_retried() -> None:
    """Test that a 500 aborts immediately with UpstreamError."""
    calls: list[httpx.Request] = []
    sleep = RecordingSleep()

    async def run() -> None:
        client = _client(_scripted([500, 200], calls), sleep)
        try:
            await client.fetch_with_retry("/api/v1/spatial/summary")
        finally:
            await client.aclose()

    with pytest.raises(errors.UpstreamError) as exc_info:
        asyncio.run(run())
    assert not isinstance(exc_info.value, errors.RetriesExhaustedError)
    assert exc_info.value.status_code == 500
    assert len(calls) == 1
    assert sleep.calls == []


def test_transport_error_is_wrapped() -> None:
    """Test that connection failures surface as UpstreamError."""

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async def run() -> None:
        client = _client(handler, RecordingSleep())
        try:
            await client.fetch("/api/v1/restaurants")
        finally:
            await client.aclose()

    with pytest.raises(errors.UpstreamError) as exc_info:
        asyncio.run(run())
    assert exc_info.value.status_code is None
    assert isinstance(exc_info.value.__cause__, httpx.ConnectError)


def test_fetch_sends_query_parameters() -> None:
    """Test that query parameters reach the upstream."""
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, text="{}")

    async def run() -> str:
        client = _client(handler, RecordingSleep())
        try:
            return await client.fetch(
                upstream.RESTAURANTS_PATH, {"page": 2, "limit": 10}
            )
        finally:
            await client.aclose()

    assert asyncio.run(run()) == "{}"
    [request] = seen
    assert request.url.path == "/api/v1/restaurants"
    assert request.url.params["page"] == "2"
    assert request.url.params["limit"] == "10"


def test_oversize_body_is_rejected() -> None:
    """Test that bodies above max_response_bytes raise UpstreamError."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="x" * 64)

    async def run() -> None:
        client = _client(handler, RecordingSleep(), max_response_bytes=16)
        try:
            await client.fetch("/api/v1/restaurants")
        finally:
            await client.aclose()

    with pytest.raises(errors.UpstreamError):
        asyncio.run(run())


def test_rate_limiter_spaces_requests() -> None:
    """Test that consecutive grants are at least one interval apart."""
    clock = FakeClock()
    limiter = upstream.RateLimiter(1.0, clock=clock, sleep=clock.sleep)

    async def run() -> None:
        await limiter.acquire()
        await limiter.acquire()
        await limiter.acquire()

    asyncio.run(run())
    assert clock.slept == [1.0, 1.0]


def test_rate_limiter_interval_override() -> None:
    """Test that a per-call interval replaces the default spacing."""
    clock = FakeClock()
    limiter = upstream.RateLimiter(1.0, clock=clock, sleep=clock.sleep)

    async def run() -> None:
        await limiter.acquire()
        await limiter.acquire(0.5)
        clock.now += 10.0
        await limiter.acquire()

    asyncio.run(run())
    assert clock.slept == [0.5]


def test_rate_limiter_serializes_concurrent_callers() -> None:
    """Test that concurrent acquirers queue instead of bursting."""
    clock = FakeClock()
    limiter = upstream.RateLimiter(1.0, clock=clock, sleep=clock.sleep)

    async def run() -> None:
        await asyncio.gather(*(limiter.acquire() for _ in range(4)))

    asyncio.run(run())
    assert clock.slept == [1.0, 1.0, 1.0]


def test_create_client_uses_settings() -> None:
    """Test that create_client wires settings into the client."""
    settings = config.Settings(
        gis_api_base_url="http://gis.test",
        max_attempts=5,
        retry_backoff_seconds=2.0,
        request_interval_seconds=0.75,
    )

    async def run() -> upstream.GISApiClient:
        client = upstream.create_client(settings)
        await client.aclose()
        return client

    client = asyncio.run(run())
    assert client.max_attempts == 5
    assert client.backoff_seconds == 2.0
    assert client.limiter.interval == 0.75
    assert client.max_response_bytes == settings.max_response_bytes
