"""Query facade over the remote SLO GIS API.

One coroutine per kind of map data. Restaurants come from the
:class:`~app.services.cache.RestaurantCache`; everything else is a direct
paced fetch followed by the matching decode. No operation lets an
upstream or decode failure escape: the failure is logged and a fixed
sample payload is returned instead, tagged ``Provenance.FALLBACK``.
Setting ``serve_fallback_data=False`` turns that off and re-raises.

Example:
    >>> service = GISApiService(client, cache, settings)
    >>> result = await service.get_roads(-120.6596, 35.2828, 500.0, 20)
    >>> [road.name for road in result.data]
    ['Higuera St', 'Marsh St', ...]
    >>> result.source
    <Provenance.LIVE: 'live'>
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from app.services import decoder, errors, records, samples, upstream

if TYPE_CHECKING:
    from collections.abc import Callable

    from app.core import config
    from app.services import cache

logger = logging.getLogger(__name__)

FeatureList = list[records.FeatureRecord]


class GISApiService:
    """Entry points used by the map routes."""

    def __init__(
        self,
        client: upstream.GISApiClient,
        restaurant_cache: cache.RestaurantCache,
        settings: config.Settings,
    ) -> None:
        self.client = client
        self.restaurant_cache = restaurant_cache
        self.settings = settings

    async def get_restaurants(
        self, limit: int | None = None
    ) -> records.QueryResult[list[records.RestaurantRecord]]:
        """Restaurants in cache order, at most ``limit`` of them."""
        return await self.restaurant_cache.get(limit)

    async def get_roads(
        self,
        lon: float | None = None,
        lat: float | None = None,
        distance: float | None = None,
        limit: int | None = None,
    ) -> records.QueryResult[FeatureList]:
        """Road segments around a point (LineString features)."""
        return await self.find_nearby_features(
            lon, lat, distance, self.settings.roads_table, limit
        )

    async def get_pois(
        self,
        lon: float | None = None,
        lat: float | None = None,
        distance: float | None = None,
        limit: int | None = None,
    ) -> records.QueryResult[FeatureList]:
        """Points of interest around a point."""
        return await self.find_nearby_features(
            lon, lat, distance, self.settings.pois_table, limit
        )

    async def find_nearby_features(
        self,
        lon: float | None,
        lat: float | None,
        distance: float | None,
        table: str | None,
        limit: int | None = None,
    ) -> records.QueryResult[FeatureList]:
        """Features of ``table`` within ``distance`` meters of a point.

        Missing coordinates, distance or table fall back to the configured
        defaults (downtown San Luis Obispo, restaurants dataset).

        Args:
            lon: Search centre longitude in degrees.
            lat: Search centre latitude in degrees.
            distance: Search radius in meters.
            table: Upstream dataset name (``mv_restaurants``, ...).
            limit: Maximum number of features; the upstream is asked for
                ``default_nearby_limit`` when None.

        Returns:
            QueryResult of feature records ordered as the upstream sent them.
        """
        settings = self.settings
        table = table or settings.restaurants_table
        params = {
            "lon": settings.default_longitude if lon is None else lon,
            "lat": settings.default_latitude if lat is None else lat,
            "distance": settings.default_distance if distance is None else distance,
            "table": table,
            "limit": settings.default_nearby_limit if limit is None else limit,
        }
        return await self._query(
            f"nearby {table}",
            upstream.NEARBY_PATH,
            params,
            decoder.decode_nearby,
            lambda: samples.sample_nearby_features(
                limit, table=table, roads_table=settings.roads_table
            ),
        )

    async def get_spatial_summary(self) -> records.QueryResult[dict[str, Any]]:
        """Feature counts per dataset."""
        return await self._query(
            "spatial summary",
            upstream.SPATIAL_SUMMARY_PATH,
            None,
            decoder.decode_data_object,
            samples.sample_spatial_summary,
        )

    async def get_data_status(self) -> records.QueryResult[dict[str, Any]]:
        """Health and record counts of the upstream database."""
        return await self._query(
            "data status",
            upstream.DATA_STATUS_PATH,
            None,
            decoder.decode_data_object,
            samples.sample_data_status,
        )

    async def get_data_metadata(self) -> records.QueryResult[dict[str, Any]]:
        """Layer descriptions and supported coordinate systems."""
        return await self._query(
            "data metadata",
            upstream.DATA_METADATA_PATH,
            None,
            decoder.decode_data_object,
            samples.sample_data_metadata,
        )

    async def _query[T](
        self,
        what: str,
        path: str,
        params: dict[str, Any] | None,
        decode: Callable[[str], T],
        fallback: Callable[[], T],
    ) -> records.QueryResult[T]:
        try:
            body = await self.client.fetch_with_retry(path, params)
            return records.QueryResult(decode(body), records.Provenance.LIVE)
        except errors.GISServiceError as exc:
            if not self.settings.serve_fallback_data:
                raise
            logger.warning("Failed to fetch %s (%s), serving sample data", what, exc)
        except Exception:
            if not self.settings.serve_fallback_data:
                raise
            logger.exception(
                "Unexpected failure fetching %s, serving sample data", what
            )
        return records.QueryResult(fallback(), records.Provenance.FALLBACK)
