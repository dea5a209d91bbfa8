"""Decoding of GIS API response envelopes into flat records.

Every upstream endpoint wraps its payload in ``{"data": ...}``. Feature
endpoints carry a GeoJSON-like FeatureCollection under ``data.features``:

    {"data": {"features": [
        {"id": "123",
         "properties": {"name": "Firestone Grill", "type": "restaurant"},
         "geometry": {"type": "Point", "coordinates": [x, y]}}
    ]}}

A structurally invalid envelope (unparseable JSON, no ``data`` object, no
``features`` array) raises :class:`~app.services.errors.DecodeError`.
Problems inside a single feature never do: the affected field falls back
to its default (id 0, empty name, unset location) and the feature is kept
in the output, in input order.

The restaurant feed is emitted in EPSG:3857 and is reprojected here; the
nearby-search feed is already EPSG:4326.
"""

from __future__ import annotations

import json
import math
from typing import Any

from app.services import errors, records
from app.utils import projection


def _load_envelope(text: str | bytes) -> dict[str, Any]:
    try:
        root = json.loads(text)
    except (TypeError, ValueError) as exc:
        raise errors.DecodeError(f"Response is not valid JSON: {exc}") from exc
    except RecursionError as exc:
        raise errors.DecodeError("Response JSON is nested too deeply") from exc
    if not isinstance(root, dict):
        raise errors.DecodeError("Response envelope is not a JSON object")
    return root


def _load_features(text: str | bytes) -> list[Any]:
    data = _load_envelope(text).get("data")
    if not isinstance(data, dict):
        raise errors.DecodeError("Response envelope has no 'data' object")
    features = data.get("features")
    if not isinstance(features, list):
        raise errors.DecodeError("Response envelope has no 'features' array")
    return features


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_float(value: Any) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    if not math.isfinite(number):
        return None
    return number


def _as_text(value: Any) -> str:
    if value is None or isinstance(value, (dict, list)):
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _parse_id(value: Any) -> int:
    """Parse a feature id, returning 0 when absent or not an integer."""
    if isinstance(value, bool) or value is None:
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else 0
    try:
        return int(str(value).strip())
    except ValueError:
        return 0


def _as_coordinate(value: Any) -> records.Coordinate | None:
    if not isinstance(value, list) or len(value) < 2:
        return None
    lon = _as_float(value[0])
    lat = _as_float(value[1])
    if lon is None or lat is None:
        return None
    return lon, lat


def _usable_coordinates(values: Any) -> tuple[records.Coordinate, ...]:
    if not isinstance(values, list):
        return ()
    coordinates = (_as_coordinate(value) for value in values)
    return tuple(c for c in coordinates if c is not None)


def _centroid(ring: tuple[records.Coordinate, ...]) -> records.Coordinate | None:
    if not ring:
        return None
    try:
        mean_x = math.fsum(x for x, _ in ring) / len(ring)
        mean_y = math.fsum(y for _, y in ring) / len(ring)
    except OverflowError:
        return None
    return mean_x, mean_y


def decode_geometry(
    geometry: Any,
) -> tuple[records.Geometry, records.Coordinate | None]:
    """Decode a GeoJSON geometry into a variant and a representative point.

    Point (and any unrecognized type) uses its own coordinates.
    LineString keeps the well-formed vertices and is represented by the
    first one. Polygon keeps its rings verbatim and is represented by the
    arithmetic mean of the exterior ring's usable vertices.

    Args:
        geometry: The ``geometry`` member of a feature.

    Returns:
        Tuple of (geometry variant, representative ``(x, y)`` or None).
    """
    geometry = _as_dict(geometry)
    geometry_type = geometry.get("type")
    coordinates = geometry.get("coordinates")

    if geometry_type == records.GeometryKind.LINESTRING:
        vertices = _usable_coordinates(coordinates)
        return (
            records.LineStringGeometry(vertices),
            vertices[0] if vertices else None,
        )

    if geometry_type == records.GeometryKind.POLYGON:
        representative = None
        if isinstance(coordinates, list) and coordinates:
            # exterior ring only, holes do not move the centroid
            representative = _centroid(_usable_coordinates(coordinates[0]))
        try:
            polygon = records.PolygonGeometry(
                coordinates if coordinates is not None else []
            )
        except RecursionError:
            polygon = records.PolygonGeometry(())
        return polygon, representative

    return records.PointGeometry(), _as_coordinate(coordinates)


def decode_restaurants(text: str | bytes) -> list[records.RestaurantRecord]:
    """Decode the restaurant feed, reprojecting EPSG:3857 to EPSG:4326.

    Args:
        text: Raw body of ``GET /api/v1/restaurants``.

    Returns:
        Restaurant records in upstream order.

    Raises:
        DecodeError: If the envelope is structurally invalid.
    """
    restaurants: list[records.RestaurantRecord] = []
    for raw in _load_features(text):
        feature = _as_dict(raw)
        properties = _as_dict(feature.get("properties"))
        _, point = decode_geometry(feature.get("geometry"))
        longitude = latitude = None
        if point is not None:
            longitude, latitude = projection.mercator_to_wgs84(*point)
        restaurants.append(
            records.RestaurantRecord(
                osm_id=_parse_id(feature.get("id")),
                name=_as_text(properties.get("name")),
                amenity=_as_text(properties.get("type")),
                longitude=longitude,
                latitude=latitude,
            )
        )
    return restaurants


def decode_nearby(text: str | bytes) -> list[records.FeatureRecord]:
    """Decode a nearby-search feed whose coordinates are already degrees.

    Args:
        text: Raw body of ``GET /api/v1/spatial/optimized/nearby``.

    Returns:
        Feature records in upstream order.

    Raises:
        DecodeError: If the envelope is structurally invalid.
    """
    features: list[records.FeatureRecord] = []
    for raw in _load_features(text):
        feature = _as_dict(raw)
        properties = _as_dict(feature.get("properties"))
        geometry, point = decode_geometry(feature.get("geometry"))
        distance = _as_float(properties.get("distance"))
        features.append(
            records.FeatureRecord(
                osm_id=_parse_id(feature.get("id")),
                name=_as_text(properties.get("name")),
                type=_as_text(properties.get("type")),
                longitude=point[0] if point else None,
                latitude=point[1] if point else None,
                distance=distance if distance is not None else 0.0,
                geometry=geometry,
            )
        )
    return features


def decode_data_object(text: str | bytes) -> dict[str, Any]:
    """Return the ``data`` object of a summary, status or metadata body.

    Raises:
        DecodeError: If the envelope is invalid or ``data`` is not an object.
    """
    data = _load_envelope(text).get("data")
    if not isinstance(data, dict):
        raise errors.DecodeError("Response envelope has no 'data' object")
    return data
