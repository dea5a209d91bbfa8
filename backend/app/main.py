"""FastAPI application entrypoint and composition root.

This module provides the application factory that builds the upstream GIS
client, the restaurant cache and the query service, stores them on
``app.state``, sets up CORS middleware, includes the map and point routers
and exposes a health check endpoint. The application lifespan starts the
background restaurant ingestion and shuts it down cleanly.

Example:
    The application can be run with uvicorn:
        $ uvicorn app.main:app --reload

    Or imported and used programmatically:
        >>> from app.main import create_app
        >>> app = create_app()
"""

from __future__ import annotations

import contextlib
import logging
import time
from typing import TYPE_CHECKING

import fastapi
from fastapi import responses
from fastapi.middleware import cors

from app.api import map as api_map
from app.api import points as api_points
from app.core import config, logger
from app.services import cache, errors, gis_api, upstream

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

SERVICE_NAME = "slo-view-backend"

log = logging.getLogger(__name__)


def create_app(settings: config.Settings | None = None) -> fastapi.FastAPI:
    """Create and configure the FastAPI application.

    The upstream client, restaurant cache and GIS service are constructed
    here once per application and handed to the routes through
    ``app.state``. CORS origins are configured from settings.

    Args:
        settings: Settings to use, the cached environment settings if None.

    Returns:
        Configured FastAPI application instance ready for ASGI server.
    """
    settings = settings or config.get_settings()
    logger.configure_logging(settings.log_level)

    client = upstream.create_client(settings)
    restaurant_cache = cache.RestaurantCache(client, settings)
    service = gis_api.GISApiService(client, restaurant_cache, settings)

    @contextlib.asynccontextmanager
    async def lifespan(_app: fastapi.FastAPI) -> AsyncIterator[None]:
        if settings.cache_enabled:
            log.info("Starting restaurant cache for %s", client.base_url)
            await restaurant_cache.start()
        try:
            yield
        finally:
            await restaurant_cache.stop()
            await client.aclose()

    app = fastapi.FastAPI(title="SLO View", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.gis_client = client
    app.state.restaurant_cache = restaurant_cache
    app.state.gis_service = service

    app.include_router(api_map.router)
    app.include_router(api_points.router)

    app.add_middleware(
        cors.CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.allow_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(errors.GISServiceError)
    async def gis_error_handler(
        _request: fastapi.Request, exc: errors.GISServiceError
    ) -> responses.JSONResponse:
        """Map upstream failures to 502 when fallbacks are disabled."""
        return responses.JSONResponse(
            status_code=502,
            content={"detail": f"GIS API unavailable: {exc}"},
        )

    @app.get("/health")
    async def health() -> dict[str, str]:  # type: ignore[misc]
        """Health check endpoint for monitoring and load balancers.

        Returns:
            Dictionary with status "UP", the service name and the current
            time in epoch milliseconds.
        """
        return {
            "status": "UP",
            "service": SERVICE_NAME,
            "timestamp": str(int(time.time() * 1000)),
        }

    return app


app = create_app()
