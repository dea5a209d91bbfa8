"""Data model for points read from the local osm2pgsql database.

The ``planet_osm_point`` table produced by osm2pgsql stores one row per
tagged OpenStreetMap node with the geometry in a ``way`` column
(EPSG:3857). :class:`OSMPoint` is that row after the geometry has been
transformed to EPSG:4326 longitude/latitude.

Example:
    >>> from app.db.models import OSMPoint
    >>> point = OSMPoint(
    ...     osm_id=2418820013,
    ...     name="Firestone Grill",
    ...     amenity="restaurant",
    ...     longitude=-120.6641,
    ...     latitude=35.2797,
    ... )
    >>> point.to_dict()["osmId"]
    2418820013
"""

from __future__ import annotations

import dataclasses
from typing import Any


@dataclasses.dataclass
class OSMPoint:
    """A tagged OpenStreetMap node.

    Attributes:
        osm_id: OpenStreetMap node id.
        name: Name tag, None when untagged.
        amenity: ``amenity`` tag (restaurant, cafe, atm, ...).
        tourism: ``tourism`` tag.
        shop: ``shop`` tag.
        highway: ``highway`` tag.
        natural: ``natural`` tag.
        leisure: ``leisure`` tag.
        longitude: Longitude in EPSG:4326 degrees, None without geometry.
        latitude: Latitude in EPSG:4326 degrees, None without geometry.
    """

    osm_id: int
    name: str | None = None
    amenity: str | None = None
    tourism: str | None = None
    shop: str | None = None
    highway: str | None = None
    natural: str | None = None
    leisure: str | None = None
    longitude: float | None = None
    latitude: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "osmId": self.osm_id,
            "name": self.name,
            "amenity": self.amenity,
            "tourism": self.tourism,
            "shop": self.shop,
            "highway": self.highway,
            "natural": self.natural,
            "leisure": self.leisure,
            "longitude": self.longitude,
            "latitude": self.latitude,
        }
