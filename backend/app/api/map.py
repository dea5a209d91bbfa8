"""Map data endpoints backed by the remote GIS API.

These routes are thin: they parse query parameters, call
:class:`~app.services.gis_api.GISApiService` and serialize the records.
List responses carry an ``X-Data-Source`` header (``live``, ``cached`` or
``fallback``) so clients can tell sample data from real data.

Example:
    Restaurants (served from the background cache):
        >>> response = client.get("/api/map/restaurants?limit=2")
        >>> response.json()
        >>> # [{"osmId": 1, "name": "...", "amenity": "restaurant",
        >>> #   "longitude": -120.6596, "latitude": 35.2828, ...}, ...]

    Roads around a point:
        >>> response = client.get(
        ...     "/api/map/roads?lon=-120.66&lat=35.28&distance=500&limit=20"
        ... )
        >>> response.json()[0]["geometry"]
        'LineString'
"""

from __future__ import annotations

from typing import Any

import fastapi
from fastapi import responses

from app.services import gis_api, records

router = fastapi.APIRouter(prefix="/api/map", tags=["map"])

SOURCE_HEADER = "X-Data-Source"

RESTAURANT_AMENITY = "restaurant"


def _get_service(request: fastapi.Request) -> gis_api.GISApiService:
    """Resolve the GIS service built by the application factory.

    Args:
        request: Incoming request (gives access to ``app.state``).

    Returns:
        The process-wide GISApiService.
    """
    return request.app.state.gis_service


def _records_response(
    result: records.QueryResult[Any],
) -> responses.JSONResponse:
    return responses.JSONResponse(
        content=[record.to_dict() for record in result.data],
        headers={SOURCE_HEADER: str(result.source)},
    )


def _object_response(
    result: records.QueryResult[dict[str, Any]],
) -> responses.JSONResponse:
    return responses.JSONResponse(
        content=result.data,
        headers={SOURCE_HEADER: str(result.source)},
    )


@router.get("/restaurants")
async def list_restaurants(
    limit: int | None = fastapi.Query(default=None, ge=1),  # noqa: B008
    service: gis_api.GISApiService = fastapi.Depends(_get_service),  # noqa: B008
) -> responses.JSONResponse:
    """List cached restaurants in cache order.

    Args:
        limit: Maximum number of restaurants, all when omitted.
        service: GIS service (injected via FastAPI Depends).

    Returns:
        JSON array of restaurant records with EPSG:4326 coordinates.
    """
    return _records_response(await service.get_restaurants(limit))


@router.get("/points/amenity/{amenity}/wgs84")
async def list_amenity_wgs84(
    amenity: str,
    limit: int | None = fastapi.Query(default=None, ge=1),  # noqa: B008
    service: gis_api.GISApiService = fastapi.Depends(_get_service),  # noqa: B008
) -> responses.JSONResponse:
    """List points of an amenity with EPSG:4326 coordinates.

    Only restaurants are republished by the GIS API; any other amenity
    yields an empty list.

    Args:
        amenity: OSM amenity value.
        limit: Maximum number of points.
        service: GIS service (injected via FastAPI Depends).

    Returns:
        JSON array of restaurant records, or ``[]``.
    """
    if amenity != RESTAURANT_AMENITY:
        return responses.JSONResponse(content=[])
    return _records_response(await service.get_restaurants(limit))


@router.get("/roads")
async def list_roads(
    lon: float | None = None,
    lat: float | None = None,
    distance: float | None = fastapi.Query(default=None, gt=0),  # noqa: B008
    limit: int | None = fastapi.Query(default=None, ge=1),  # noqa: B008
    service: gis_api.GISApiService = fastapi.Depends(_get_service),  # noqa: B008
) -> responses.JSONResponse:
    """List road segments within ``distance`` meters of a point."""
    return _records_response(await service.get_roads(lon, lat, distance, limit))


@router.get("/pois")
async def list_pois(
    lon: float | None = None,
    lat: float | None = None,
    distance: float | None = fastapi.Query(default=None, gt=0),  # noqa: B008
    limit: int | None = fastapi.Query(default=None, ge=1),  # noqa: B008
    service: gis_api.GISApiService = fastapi.Depends(_get_service),  # noqa: B008
) -> responses.JSONResponse:
    """List points of interest within ``distance`` meters of a point."""
    return _records_response(await service.get_pois(lon, lat, distance, limit))


@router.get("/spatial/nearby")
async def find_nearby(
    lon: float,
    lat: float,
    distance: float | None = fastapi.Query(default=None, gt=0),  # noqa: B008
    table: str | None = None,
    limit: int | None = fastapi.Query(default=None, ge=1),  # noqa: B008
    service: gis_api.GISApiService = fastapi.Depends(_get_service),  # noqa: B008
) -> responses.JSONResponse:
    """Find features of any upstream dataset around a point.

    Args:
        lon: Search centre longitude in degrees.
        lat: Search centre latitude in degrees.
        distance: Search radius in meters, configured default if omitted.
        table: Upstream dataset name, the restaurants dataset if omitted.
        limit: Maximum number of features.
        service: GIS service (injected via FastAPI Depends).

    Returns:
        JSON array of feature records, each with ``distance`` in meters.
    """
    result = await service.find_nearby_features(lon, lat, distance, table, limit)
    return _records_response(result)


@router.get("/spatial/summary")
async def spatial_summary(
    service: gis_api.GISApiService = fastapi.Depends(_get_service),  # noqa: B008
) -> responses.JSONResponse:
    """Feature counts per dataset."""
    return _object_response(await service.get_spatial_summary())


@router.get("/data/status")
async def data_status(
    service: gis_api.GISApiService = fastapi.Depends(_get_service),  # noqa: B008
) -> responses.JSONResponse:
    """Upstream database health and record counts."""
    return _object_response(await service.get_data_status())


@router.get("/data/metadata")
async def data_metadata(
    service: gis_api.GISApiService = fastapi.Depends(_get_service),  # noqa: B008
) -> responses.JSONResponse:
    """Layer descriptions and coordinate systems."""
    return _object_response(await service.get_data_metadata())


@router.get("/cache/status")
async def cache_status(
    service: gis_api.GISApiService = fastapi.Depends(_get_service),  # noqa: B008
) -> dict[str, Any]:
    """State of the restaurant cache."""
    status = service.restaurant_cache.status()
    return {
        "state": str(status.state),
        "size": status.size,
        "refreshing": status.refreshing,
        "lastRefreshed": (
            status.last_refreshed.isoformat() if status.last_refreshed else None
        ),
    }
