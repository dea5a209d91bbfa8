"""Background-refreshed in-memory cache of upstream restaurants.

The restaurant feed is paginated and heavily rate limited, so the full
collection is ingested in the background (after a short settle delay on
startup, then once per refresh interval) and served from memory.

The cached collection is an immutable snapshot. A refresh builds a new
tuple and swaps the reference under the cache lock, so a reader sees
either the previous complete snapshot or the new one, never a mix.

Reads never fail: a warm, non-empty cache answers directly; otherwise
one small live page is fetched; if that fails too, sample restaurants are
returned (unless fallbacks are disabled in settings).
"""

from __future__ import annotations

import asyncio
import contextlib
import dataclasses
import datetime
import enum
import logging
from typing import TYPE_CHECKING

from app.services import decoder, errors, records, samples, upstream

if TYPE_CHECKING:
    from app.core import config
    from app.services.upstream import Sleep

logger = logging.getLogger(__name__)


class CacheState(enum.StrEnum):
    COLD = "cold"
    WARM = "warm"


@dataclasses.dataclass(frozen=True)
class CacheStatus:
    state: CacheState
    size: int
    last_refreshed: datetime.datetime | None
    refreshing: bool


async def fetch_all_restaurants(
    client: upstream.GISApiClient,
    page_size: int = 10,
    page_delay: float = 0.5,
) -> list[records.RestaurantRecord]:
    """Ingest every restaurant page until the feed runs dry.

    Pages are requested from 1 upwards. An empty page ends the run, and so
    does any fetch or decode failure: whatever was collected so far is
    returned rather than discarded.

    Args:
        client: Upstream client.
        page_size: Features per page (the upstream rejects large pages).
        page_delay: Minimum spacing between page requests.

    Returns:
        All restaurants collected, in page order.
    """
    collected: list[records.RestaurantRecord] = []
    page = 1
    while True:
        try:
            body = await client.fetch_with_retry(
                upstream.RESTAURANTS_PATH,
                {"page": page, "limit": page_size},
                min_interval=page_delay,
            )
            restaurants = decoder.decode_restaurants(body)
        except errors.GISServiceError as exc:
            logger.warning(
                "Restaurant ingestion stopped at page %d: %s", page, exc
            )
            break
        except Exception:
            logger.exception("Restaurant ingestion failed at page %d", page)
            break
        if not restaurants:
            break
        collected.extend(restaurants)
        page += 1
    logger.info(
        "Ingested %d restaurants from %d page(s)", len(collected), page - 1
    )
    return collected


class RestaurantCache:
    """Owner of the restaurant snapshot and its refresh schedule."""

    def __init__(
        self,
        client: upstream.GISApiClient,
        settings: config.Settings,
        *,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._client = client
        self._settings = settings
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._snapshot: tuple[records.RestaurantRecord, ...] = ()
        self._state = CacheState.COLD
        self._last_refreshed: datetime.datetime | None = None
        self._task: asyncio.Task[None] | None = None
        self._refreshing = False

    @property
    def state(self) -> CacheState:
        return self._state

    async def start(self) -> None:
        """Schedule the background ingestion task (idempotent)."""
        if self._task is not None and not self._task.done():
            return
        self._task = asyncio.create_task(
            self._run(), name="restaurant-cache-refresh"
        )

    async def stop(self) -> None:
        """Cancel the background task and wait for it to finish."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _run(self) -> None:
        await self._sleep(self._settings.cache_initial_delay_seconds)
        while True:
            await self.refresh()
            await self._sleep(self._settings.cache_refresh_interval_seconds)

    async def refresh(self) -> int:
        """Run one full ingestion and swap in the result.

        The cache turns warm even when ingestion fails, so reads never wait
        on it. A failed or empty run keeps the previous snapshot.

        Returns:
            Number of records in the installed snapshot.
        """
        self._refreshing = True
        try:
            restaurants = await fetch_all_restaurants(
                self._client,
                page_size=self._settings.page_size,
                page_delay=self._settings.page_delay_seconds,
            )
        except Exception:
            # background job boundary; cancellation still propagates
            logger.exception("Restaurant cache refresh failed")
            restaurants = []
        finally:
            self._refreshing = False

        async with self._lock:
            if restaurants:
                self._snapshot = tuple(restaurants)
                self._last_refreshed = datetime.datetime.now(datetime.UTC)
                logger.info(
                    "Loaded %d restaurants into cache", len(self._snapshot)
                )
            else:
                logger.warning(
                    "Restaurant refresh produced no data, keeping %d cached",
                    len(self._snapshot),
                )
            self._state = CacheState.WARM
            return len(self._snapshot)

    async def snapshot(self) -> tuple[records.RestaurantRecord, ...]:
        async with self._lock:
            return self._snapshot

    async def get(
        self, limit: int | None = None
    ) -> records.QueryResult[list[records.RestaurantRecord]]:
        """Return up to ``limit`` restaurants, degrading instead of failing.

        Args:
            limit: Maximum number of restaurants, None for all.

        Returns:
            QueryResult tagged CACHED, LIVE (small direct fetch while the
            cache is cold or empty) or FALLBACK (sample restaurants).

        Raises:
            GISServiceError: Only when ``serve_fallback_data`` is disabled
                and the direct fetch fails. Other exceptions from the fetch
                or decode are re-raised under the same condition.
        """
        async with self._lock:
            state, snapshot = self._state, self._snapshot

        if state is CacheState.WARM and snapshot:
            selected = snapshot if limit is None else snapshot[: max(limit, 0)]
            return records.QueryResult(list(selected), records.Provenance.CACHED)

        page_size = self._settings.page_size
        if limit is not None:
            page_size = max(1, min(limit, page_size))
        try:
            body = await self._client.fetch_with_retry(
                upstream.RESTAURANTS_PATH, {"page": 1, "limit": page_size}
            )
            restaurants = decoder.decode_restaurants(body)
        except errors.GISServiceError as exc:
            if not self._settings.serve_fallback_data:
                raise
            logger.warning(
                "Restaurants unavailable (%s), serving sample data", exc
            )
            return self._fallback(limit)
        except Exception:
            if not self._settings.serve_fallback_data:
                raise
            logger.exception("Live restaurant fetch failed, serving sample data")
            return self._fallback(limit)

        logger.info(
            "Restaurant cache %s, served %d live restaurants",
            state,
            len(restaurants),
        )
        if limit is not None:
            restaurants = restaurants[: max(limit, 0)]
        return records.QueryResult(restaurants, records.Provenance.LIVE)

    @staticmethod
    def _fallback(
        limit: int | None,
    ) -> records.QueryResult[list[records.RestaurantRecord]]:
        return records.QueryResult(
            samples.sample_restaurants(limit), records.Provenance.FALLBACK
        )

    def status(self) -> CacheStatus:
        return CacheStatus(
            state=self._state,
            size=len(self._snapshot),
            last_refreshed=self._last_refreshed,
            refreshing=self._refreshing,
        )
