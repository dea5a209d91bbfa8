"""API router subpackage for the SLO View backend.

Each module exposes its own APIRouter for composition in the application's
main FastAPI instance.

Submodules:
    - map: Restaurants, roads, POIs, nearby search, spatial summary and
      data status/metadata republished from the remote GIS API.
    - points: OpenStreetMap point queries against the local spatial
      database.

Routers are grouped by data source to keep them independently testable.
"""
