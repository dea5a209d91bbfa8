"""Database interface and repository abstractions.

This package holds the read-only access path to the local osm2pgsql
``planet_osm_point`` table: the OSMPoint model and repositories behind
PointRepositoryProtocol, supporting production (PostGIS) and testing
(in-memory) backends.

Example:
    Use in a service or FastAPI dependency:
        >>> from app.db import database
        >>> repo = database.get_point_repository(settings)
        >>> repo.by_amenity("restaurant")
"""
