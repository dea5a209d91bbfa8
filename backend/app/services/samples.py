"""Static sample data served when the GIS API is unreachable.

Every accessor builds fresh objects so callers may mutate what they get
without touching the next caller's copy.
"""

from __future__ import annotations

from typing import Any

from app.services import records

_SAMPLE_RESTAURANTS: tuple[tuple[int, str, str, float, float], ...] = (
    (1, "Sample Restaurant 1", "restaurant", 35.2828, -120.6596),
    (2, "Sample Restaurant 2", "fast_food", 35.2900, -120.6500),
    (3, "Sample Restaurant 3", "bar", 35.2700, -120.6700),
    (4, "Sample Restaurant 4", "restaurant", 35.3000, -120.6400),
    (5, "Sample Restaurant 5", "fast_food", 35.2600, -120.6800),
)

_SAMPLE_NEARBY: tuple[tuple[int, str, str, float, float, float], ...] = (
    (1, "Sample Restaurant", "restaurant", 35.2828, -120.6596, 0.0),
    (2, "Sample POI", "atm", 35.2830, -120.6598, 25.5),
)

_SAMPLE_ROAD: tuple[records.Coordinate, ...] = (
    (-120.6625, 35.2803),
    (-120.6596, 35.2828),
    (-120.6571, 35.2851),
)


def _truncate[T](items: list[T], limit: int | None) -> list[T]:
    if limit is not None and limit < len(items):
        return items[: max(limit, 0)]
    return items


def sample_restaurants(limit: int | None = None) -> list[records.RestaurantRecord]:
    """Five restaurants around downtown San Luis Obispo."""
    restaurants = [
        records.RestaurantRecord(
            osm_id=osm_id,
            name=name,
            amenity=amenity,
            longitude=lon,
            latitude=lat,
        )
        for osm_id, name, amenity, lat, lon in _SAMPLE_RESTAURANTS
    ]
    return _truncate(restaurants, limit)


def sample_nearby_features(
    limit: int | None = None,
    table: str | None = None,
    roads_table: str = "mv_roads",
) -> list[records.FeatureRecord]:
    """Sample nearby-search hits.

    Args:
        limit: Maximum number of features to return.
        table: Dataset the caller searched. The roads dataset gets a
            LineString sample, everything else the point samples.
        roads_table: Name of the roads dataset.

    Returns:
        List of sample feature records.
    """
    if table == roads_table:
        features = [
            records.FeatureRecord(
                osm_id=3,
                name="Sample Road",
                type="primary",
                longitude=_SAMPLE_ROAD[0][0],
                latitude=_SAMPLE_ROAD[0][1],
                geometry=records.LineStringGeometry(_SAMPLE_ROAD),
            )
        ]
    else:
        features = [
            records.FeatureRecord(
                osm_id=osm_id,
                name=name,
                type=kind,
                longitude=lon,
                latitude=lat,
                distance=distance,
            )
            for osm_id, name, kind, lat, lon, distance in _SAMPLE_NEARBY
        ]
    return _truncate(features, limit)


def sample_spatial_summary() -> dict[str, Any]:
    return {"restaurants": 710, "roads": 54534, "pois": 3629}


def sample_data_status() -> dict[str, Any]:
    return {
        "database": {"status": "healthy", "database_size": "591 MB"},
        "record_counts": {"restaurants": 710, "roads": 54534, "pois": 3629},
        "health": "healthy",
    }


def sample_data_metadata() -> dict[str, Any]:
    return {
        "layers": [
            {
                "name": "restaurants",
                "description": "Restaurant locations",
                "geometry_type": "point",
            },
            {
                "name": "roads",
                "description": "Road network",
                "geometry_type": "linestring",
            },
            {
                "name": "pois",
                "description": "Points of Interest",
                "geometry_type": "point",
            },
        ],
        "coordinate_systems": ["EPSG:3857", "EPSG:4326"],
    }
