"""App package initializer for the SLO View backend.

This package republishes San Luis Obispo map features (restaurants, roads,
points of interest) from a remote GIS API to the SLO View frontend. The
upstream is paginated and rate limited, so restaurants are ingested in the
background into an in-memory cache, other feature kinds are fetched on
demand with client-side pacing, and every query degrades to static sample
data rather than failing.

- Restaurant coordinates arrive in EPSG:3857 and are reprojected to
  EPSG:4326; every record leaving the service is in degrees
- GeoJSON Point, LineString and Polygon features are flattened into
  records with a representative longitude/latitude
- A secondary path reads OpenStreetMap points from a local PostGIS
  database populated by osm2pgsql

See DESIGN.md and module sub-docstrings for details on architecture and usage.
"""
