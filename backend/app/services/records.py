"""Flat feature records served to the map frontend.

Upstream GeoJSON features are decoded once into these immutable records.
Geometry is a tagged variant (:class:`PointGeometry`,
:class:`LineStringGeometry`, :class:`PolygonGeometry`) so nothing
downstream re-inspects a geometry type string. Longitude and latitude on
a record are always EPSG:4326 degrees; they are ``None`` when the source
geometry yields no usable representative point.

Example:
    >>> record = FeatureRecord(
    ...     osm_id=42,
    ...     name="Higuera St",
    ...     type="primary",
    ...     longitude=-120.66,
    ...     latitude=35.28,
    ...     geometry=LineStringGeometry(((-120.66, 35.28), (-120.65, 35.29))),
    ... )
    >>> record.to_dict()["geometry"]
    'LineString'
"""

from __future__ import annotations

import dataclasses
import enum
import math
import types
from typing import Any, ClassVar

Coordinate = tuple[float, float]


class GeometryKind(enum.StrEnum):
    POINT = "Point"
    LINESTRING = "LineString"
    POLYGON = "Polygon"


class Provenance(enum.StrEnum):
    """Where a query result came from."""

    LIVE = "live"
    CACHED = "cached"
    FALLBACK = "fallback"


@dataclasses.dataclass(frozen=True)
class PointGeometry:
    kind: ClassVar[GeometryKind] = GeometryKind.POINT

    def payload(self) -> Any:
        return None


@dataclasses.dataclass(frozen=True)
class LineStringGeometry:
    """Ordered ``(lon, lat)`` vertices, malformed entries already removed."""

    coordinates: tuple[Coordinate, ...] = ()
    kind: ClassVar[GeometryKind] = GeometryKind.LINESTRING

    def payload(self) -> Any:
        return [[lon, lat] for lon, lat in self.coordinates]


def _freeze(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(item) for item in value)
    if isinstance(value, dict):
        return types.MappingProxyType(
            {key: _freeze(item) for key, item in value.items()}
        )
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return value


def _thaw(value: Any) -> Any:
    if isinstance(value, tuple):
        return [_thaw(item) for item in value]
    if isinstance(value, types.MappingProxyType):
        return {key: _thaw(item) for key, item in value.items()}
    return value


@dataclasses.dataclass(frozen=True)
class PolygonGeometry:
    """Ring structure as received; holes are kept.

    The rings are stored as nested tuples, so the record cannot be changed
    through its serialized form. Non-finite numbers are stored as ``None``.
    """

    rings: Any = ()
    kind: ClassVar[GeometryKind] = GeometryKind.POLYGON

    def __post_init__(self) -> None:
        object.__setattr__(self, "rings", _freeze(self.rings))

    def payload(self) -> Any:
        return _thaw(self.rings)


Geometry = PointGeometry | LineStringGeometry | PolygonGeometry


def _put_location(
    out: dict[str, Any],
    longitude: float | None,
    latitude: float | None,
) -> None:
    if longitude is not None and latitude is not None:
        out["longitude"] = longitude
        out["latitude"] = latitude


@dataclasses.dataclass(frozen=True)
class FeatureRecord:
    """A road, POI or nearby-search hit.

    Attributes:
        osm_id: OpenStreetMap identifier, 0 when the source had none.
        name: Feature name, empty when absent.
        type: Category reported by the upstream (``primary``, ``atm``...).
        longitude: Representative longitude in degrees, or None.
        latitude: Representative latitude in degrees, or None.
        distance: Meters from the search centre (nearby results only).
        geometry: Decoded geometry variant.
    """

    osm_id: int
    name: str
    type: str
    longitude: float | None
    latitude: float | None
    distance: float = 0.0
    geometry: Geometry = PointGeometry()

    @property
    def geometry_kind(self) -> GeometryKind:
        return self.geometry.kind

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "osmId": self.osm_id,
            "name": self.name,
            "type": self.type,
            "distance": self.distance,
            "geometry": str(self.geometry.kind),
        }
        _put_location(out, self.longitude, self.latitude)
        payload = self.geometry.payload()
        if payload is not None:
            out["coordinates"] = payload
        return out


@dataclasses.dataclass(frozen=True)
class RestaurantRecord:
    """A restaurant shaped like the legacy ``planet_osm_point`` entity.

    The classification fields stay ``None``; they exist so the frontend
    can treat restaurants and database points alike.
    """

    osm_id: int
    name: str
    amenity: str
    longitude: float | None
    latitude: float | None
    tourism: str | None = None
    shop: str | None = None
    highway: str | None = None
    natural: str | None = None
    leisure: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "osmId": self.osm_id,
            "name": self.name,
            "amenity": self.amenity,
            "tourism": self.tourism,
            "shop": self.shop,
            "highway": self.highway,
            "natural": self.natural,
            "leisure": self.leisure,
        }
        _put_location(out, self.longitude, self.latitude)
        return out


@dataclasses.dataclass(frozen=True)
class QueryResult[T]:
    """Payload plus the provenance of the data it carries."""

    data: T
    source: Provenance

    @property
    def degraded(self) -> bool:
        return self.source is Provenance.FALLBACK
