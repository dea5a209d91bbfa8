"""HTTP client for the remote SLO GIS API.

All upstream traffic goes through :class:`GISApiClient`, which owns one
``httpx.AsyncClient`` and one :class:`RateLimiter`. The upstream enforces
aggressive rate limits, so every request waits for the limiter first and
rate-limited responses (HTTP 429) are retried with a linear backoff by
:meth:`GISApiClient.fetch_with_retry`.

Example:
    >>> limiter = RateLimiter(interval=1.0)
    >>> client = GISApiClient("http://34.83.60.201", limiter=limiter)
    >>> body = await client.fetch_with_retry(
    ...     "/api/v1/restaurants", {"page": 1, "limit": 10}
    ... )
    >>> await client.aclose()
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Any

import httpx

from app.services import errors

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Mapping

    from app.core import config

    Sleep = Callable[[float], Awaitable[None]]

logger = logging.getLogger(__name__)

RESTAURANTS_PATH = "/api/v1/restaurants"
SPATIAL_SUMMARY_PATH = "/api/v1/spatial/summary"
NEARBY_PATH = "/api/v1/spatial/optimized/nearby"
DATA_STATUS_PATH = "/api/v1/data/status"
DATA_METADATA_PATH = "/api/v1/data/metadata"


class RateLimiter:
    """Fixed-interval limiter shared by every upstream call.

    ``acquire`` returns once at least ``interval`` seconds have passed
    since the previous grant. Grants are serialized, so concurrent callers
    queue behind each other instead of bursting.
    """

    def __init__(
        self,
        interval: float,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.interval = interval
        self._clock = clock
        self._sleep = sleep
        self._last_grant: float | None = None
        self._lock = asyncio.Lock()

    async def acquire(self, interval: float | None = None) -> None:
        """Wait for the next request slot.

        Args:
            interval: Spacing to enforce for this request instead of the
                limiter default (ingestion pages use a shorter one).
        """
        spacing = self.interval if interval is None else interval
        async with self._lock:
            if self._last_grant is not None:
                delay = self._last_grant + spacing - self._clock()
                if delay > 0:
                    await self._sleep(delay)
            self._last_grant = self._clock()


class GISApiClient:
    """Paced, retrying GET client for the GIS API."""

    def __init__(
        self,
        base_url: str,
        *,
        limiter: RateLimiter,
        timeout: float = 30.0,
        max_attempts: int = 3,
        backoff_seconds: float = 1.0,
        max_response_bytes: int | None = None,
        sleep: Sleep = asyncio.sleep,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url
        self.limiter = limiter
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self.max_response_bytes = max_response_bytes
        self._sleep = sleep
        self._http = httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(timeout),
            transport=transport,
            headers={"Accept": "application/json"},
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def fetch(
        self,
        path: str,
        params: Mapping[str, Any] | None = None,
        *,
        min_interval: float | None = None,
    ) -> str:
        """Issue one paced GET and return the body text.

        Args:
            path: API path relative to the base URL.
            params: Query parameters.
            min_interval: Override of the limiter spacing for this call.

        Returns:
            Response body as text.

        Raises:
            RateLimitedError: If the upstream answered HTTP 429.
            UpstreamError: On transport failure, any other non-2xx status
                or a body above ``max_response_bytes``.
        """
        await self.limiter.acquire(min_interval)
        try:
            response = await self._http.get(path, params=dict(params or {}))
        except httpx.HTTPError as exc:
            raise errors.UpstreamError(
                f"GET {path} failed: {exc.__class__.__name__}: {exc}"
            ) from exc

        if response.status_code == 429:
            raise errors.RateLimitedError(f"GET {path} was rate limited")
        if response.is_error:
            raise errors.UpstreamError(
                f"GET {path} returned HTTP {response.status_code}",
                status_code=response.status_code,
            )
        if (
            self.max_response_bytes is not None
            and len(response.content) > self.max_response_bytes
        ):
            raise errors.UpstreamError(
                f"GET {path} returned {len(response.content)} bytes, "
                f"limit is {self.max_response_bytes}",
                status_code=response.status_code,
            )
        return response.text

    async def fetch_with_retry(
        self,
        path: str,
        params: Mapping[str, Any] | None = None,
        *,
        max_attempts: int | None = None,
        min_interval: float | None = None,
    ) -> str:
        """Like :meth:`fetch`, retrying rate-limited responses.

        After the n-th rate-limited attempt the call sleeps
        ``n * backoff_seconds`` and tries again. Any other error is raised
        immediately.

        Args:
            path: API path relative to the base URL.
            params: Query parameters.
            max_attempts: Total attempts, defaults to the client setting.
            min_interval: Override of the limiter spacing for each attempt.

        Returns:
            Response body as text.

        Raises:
            RetriesExhaustedError: If every attempt was rate limited.
            UpstreamError: On any non rate-limit failure.
        """
        attempts = max_attempts if max_attempts is not None else self.max_attempts
        for attempt in range(1, attempts + 1):
            try:
                return await self.fetch(path, params, min_interval=min_interval)
            except errors.RateLimitedError as exc:
                if attempt >= attempts:
                    raise errors.RetriesExhaustedError(attempts) from exc
                backoff = attempt * self.backoff_seconds
                logger.warning(
                    "GET %s rate limited (attempt %d/%d), retrying in %.1fs",
                    path,
                    attempt,
                    attempts,
                    backoff,
                )
                await self._sleep(backoff)
        raise errors.RetriesExhaustedError(attempts)


def create_client(
    settings: config.Settings,
    *,
    sleep: Sleep = asyncio.sleep,
    transport: httpx.AsyncBaseTransport | None = None,
) -> GISApiClient:
    """Build a client configured from application settings.

    Args:
        settings: Application settings.
        sleep: Sleep coroutine used for pacing and backoff.
        transport: Optional httpx transport (tests use ``MockTransport``).

    Returns:
        GISApiClient ready for use.
    """
    limiter = RateLimiter(settings.request_interval_seconds, sleep=sleep)
    return GISApiClient(
        str(settings.gis_api_base_url),
        limiter=limiter,
        timeout=settings.request_timeout_seconds,
        max_attempts=settings.max_attempts,
        backoff_seconds=settings.retry_backoff_seconds,
        max_response_bytes=settings.max_response_bytes,
        sleep=sleep,
        transport=transport,
    )
