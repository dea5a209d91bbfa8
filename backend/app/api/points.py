"""Point query endpoints backed by the local spatial database.

These routes read the osm2pgsql ``planet_osm_point`` table through a
:class:`~app.db.database.PointRepositoryProtocol`. Coordinates in every
response are EPSG:4326 degrees.

Example:
    Points inside a bounding box:
        >>> response = client.get(
        ...     "/api/map/points?minLon=-120.67&minLat=35.27"
        ...     "&maxLon=-120.65&maxLat=35.29"
        ... )

    Case-sensitive name search:
        >>> response = client.get("/api/map/points/search?name=Grill")
"""

from __future__ import annotations

from typing import Any

import fastapi

from app.core import config
from app.db import database

router = fastapi.APIRouter(prefix="/api/map/points", tags=["points"])


def _get_repo(
    settings: config.Settings = fastapi.Depends(config.get_settings),  # noqa: B008
) -> database.PointRepositoryProtocol:
    """Resolve the point repository dependency.

    Args:
        settings: Application settings (injected via FastAPI Depends).

    Returns:
        PointRepositoryProtocol implementation
            (PostgresPointRepository in production).
    """
    return database.get_point_repository(settings)


@router.get("")
async def points_in_bounds(
    min_lon: float = fastapi.Query(alias="minLon"),  # noqa: B008
    min_lat: float = fastapi.Query(alias="minLat"),  # noqa: B008
    max_lon: float = fastapi.Query(alias="maxLon"),  # noqa: B008
    max_lat: float = fastapi.Query(alias="maxLat"),  # noqa: B008
    repo: database.PointRepositoryProtocol = fastapi.Depends(_get_repo),  # noqa: B008
) -> list[dict[str, Any]]:
    """List points inside a longitude/latitude bounding box.

    Raises:
        HTTPException: If the box is inverted (400 status code).
    """
    if min_lon > max_lon or min_lat > max_lat:
        raise fastapi.HTTPException(
            status_code=400,
            detail="Invalid bounding box",
        )
    points = repo.in_bounds(min_lon, min_lat, max_lon, max_lat)
    return [point.to_dict() for point in points]


@router.get("/amenity/{amenity}")
async def points_by_amenity(
    amenity: str,
    repo: database.PointRepositoryProtocol = fastapi.Depends(_get_repo),  # noqa: B008
) -> list[dict[str, Any]]:
    return [point.to_dict() for point in repo.by_amenity(amenity)]


@router.get("/tourism/{tourism}")
async def points_by_tourism(
    tourism: str,
    repo: database.PointRepositoryProtocol = fastapi.Depends(_get_repo),  # noqa: B008
) -> list[dict[str, Any]]:
    return [point.to_dict() for point in repo.by_tourism(tourism)]


@router.get("/shop/{shop}")
async def points_by_shop(
    shop: str,
    repo: database.PointRepositoryProtocol = fastapi.Depends(_get_repo),  # noqa: B008
) -> list[dict[str, Any]]:
    return [point.to_dict() for point in repo.by_shop(shop)]


@router.get("/search")
async def search_points(
    name: str = fastapi.Query(min_length=1),  # noqa: B008
    repo: database.PointRepositoryProtocol = fastapi.Depends(_get_repo),  # noqa: B008
) -> list[dict[str, Any]]:
    """List points whose name contains ``name``."""
    return [point.to_dict() for point in repo.search_name(name)]
