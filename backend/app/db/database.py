"""Database helpers and repositories for OpenStreetMap points."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, cast

import psycopg2
import psycopg2.extensions
import psycopg2.extras

from app.db import models as db_models

if TYPE_CHECKING:
    from collections.abc import Iterable

    from app.core import config


def _cast[T](value: object, dtype: type[T]) -> T | None:  # type: ignore[misc]
    """Cast a value to a specific type, returning None if value is None."""
    if value is None:
        return None

    return cast(T, value)


class PointRepositoryProtocol(Protocol):
    """Protocol interface for querying OpenStreetMap points.

    Every implementation returns coordinates in EPSG:4326 degrees.
    """

    def in_bounds(
        self,
        min_lon: float,
        min_lat: float,
        max_lon: float,
        max_lat: float,
    ) -> list[db_models.OSMPoint]: ...

    def by_amenity(self, amenity: str) -> list[db_models.OSMPoint]: ...

    def by_tourism(self, tourism: str) -> list[db_models.OSMPoint]: ...

    def by_shop(self, shop: str) -> list[db_models.OSMPoint]: ...

    def search_name(self, name: str) -> list[db_models.OSMPoint]: ...


class InMemoryPointRepository(PointRepositoryProtocol):
    """Simple in-memory store for tests and local development.

    Points are kept in insertion order. Data is lost when the process exits.
    """

    def __init__(self, points: Iterable[db_models.OSMPoint] = ()) -> None:
        """Initialize the repository, optionally pre-loaded with points."""
        self._store: dict[int, db_models.OSMPoint] = {}
        for point in points:
            self.add(point)

    def add(self, point: db_models.OSMPoint) -> db_models.OSMPoint:
        """Add or replace a point keyed by its OSM id.

        Args:
            point: Point to store.

        Returns:
            The stored point.
        """
        self._store[point.osm_id] = point
        return point

    def in_bounds(
        self,
        min_lon: float,
        min_lat: float,
        max_lon: float,
        max_lat: float,
    ) -> list[db_models.OSMPoint]:
        return [
            point
            for point in self._store.values()
            if point.longitude is not None
            and point.latitude is not None
            and min_lon <= point.longitude <= max_lon
            and min_lat <= point.latitude <= max_lat
        ]

    def by_amenity(self, amenity: str) -> list[db_models.OSMPoint]:
        return [p for p in self._store.values() if p.amenity == amenity]

    def by_tourism(self, tourism: str) -> list[db_models.OSMPoint]:
        return [p for p in self._store.values() if p.tourism == tourism]

    def by_shop(self, shop: str) -> list[db_models.OSMPoint]:
        return [p for p in self._store.values() if p.shop == shop]

    def search_name(self, name: str) -> list[db_models.OSMPoint]:
        return [
            p for p in self._store.values() if p.name is not None and name in p.name
        ]


class PostgresPointRepository(PointRepositoryProtocol):
    """PostGIS-backed reader for the osm2pgsql ``planet_osm_point`` table.

    The ``way`` column is stored in EPSG:3857; every query transforms it
    to EPSG:4326 so callers only ever see degrees. The table is owned by
    osm2pgsql, this repository never writes to it.
    """

    SELECT_SQL = """
    SELECT osm_id, name, amenity, tourism, shop, highway, "natural", leisure,
           ST_X(ST_Transform(way, 4326)) AS longitude,
           ST_Y(ST_Transform(way, 4326)) AS latitude
    FROM planet_osm_point
    """

    def __init__(self, settings: config.Settings) -> None:
        """Initialize repository with database settings.

        Args:
            settings: Application settings containing database connection URL.
        """
        self.settings = settings

    def _connection(self) -> psycopg2.extensions.connection:
        """Create a new database connection.

        Returns:
            psycopg2 connection object.
        """
        return psycopg2.connect(self.settings.database_url)

    def _select(
        self, where: str, params: dict[str, object]
    ) -> list[db_models.OSMPoint]:
        with (
            self._connection() as conn,
            conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur,
        ):
            cur.execute(f"{self.SELECT_SQL} WHERE {where}", params)
            return [
                self._from_row(cast(dict[str, object], row))
                for row in cur.fetchall()
            ]

    def in_bounds(
        self,
        min_lon: float,
        min_lat: float,
        max_lon: float,
        max_lat: float,
    ) -> list[db_models.OSMPoint]:
        return self._select(
            "way && ST_Transform("
            "ST_MakeEnvelope(%(min_lon)s, %(min_lat)s, %(max_lon)s, "
            "%(max_lat)s, 4326), 3857)",
            {
                "min_lon": min_lon,
                "min_lat": min_lat,
                "max_lon": max_lon,
                "max_lat": max_lat,
            },
        )

    def by_amenity(self, amenity: str) -> list[db_models.OSMPoint]:
        return self._select("amenity = %(value)s", {"value": amenity})

    def by_tourism(self, tourism: str) -> list[db_models.OSMPoint]:
        return self._select("tourism = %(value)s", {"value": tourism})

    def by_shop(self, shop: str) -> list[db_models.OSMPoint]:
        return self._select("shop = %(value)s", {"value": shop})

    def search_name(self, name: str) -> list[db_models.OSMPoint]:
        return self._select(
            "name LIKE %(pattern)s",
            {"pattern": f"%{_escape_like(name)}%"},
        )

    @staticmethod
    def _from_row(row: dict[str, object]) -> db_models.OSMPoint:
        """Convert a database row dictionary to an OSMPoint.

        Args:
            row: Dictionary from a RealDictCursor query result.

        Returns:
            OSMPoint with coordinates in EPSG:4326.
        """
        longitude = row.get("longitude")
        latitude = row.get("latitude")
        return db_models.OSMPoint(
            osm_id=int(cast(int, row["osm_id"])),
            name=_cast(row.get("name"), str),
            amenity=_cast(row.get("amenity"), str),
            tourism=_cast(row.get("tourism"), str),
            shop=_cast(row.get("shop"), str),
            highway=_cast(row.get("highway"), str),
            natural=_cast(row.get("natural"), str),
            leisure=_cast(row.get("leisure"), str),
            longitude=float(cast(float, longitude)) if longitude is not None else None,
            latitude=float(cast(float, latitude)) if latitude is not None else None,
        )


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def get_point_repository(settings: config.Settings) -> PointRepositoryProtocol:
    """Factory function to create a point repository.

    Args:
        settings: Application settings for database connection.

    Returns:
        PostgresPointRepository instance for production use.
    """
    return PostgresPointRepository(settings)
