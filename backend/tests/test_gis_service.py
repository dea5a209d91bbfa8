"""Tests for the GISApiService query facade in app.services.gis_api.

The upstream GIS API is simulated with ``httpx.MockTransport`` routing on
the request path. These tests cover:
    - parameter defaults for nearby, roads and POI searches,
    - decoding of mixed Point/LineString/Polygon nearby results,
    - summary, status and metadata passthrough,
    - degradation to sample payloads tagged FALLBACK, and the strict mode
      that re-raises instead,
    - the end-to-end restaurant path through a warm cache.

See Also:
    - backend/app/services/gis_api.py for implementation.
"""

from __future__ import annotations

import asyncio
import json
from typing import TYPE_CHECKING, Any

import httpx
import pytest

from app.core import config
from app.services import cache, decoder, errors, gis_api, records, upstream
from app.utils import projection

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable


NEARBY_BODY = json.dumps(
    {
        "data": {
            "features": [
                {
                    "id": "101",
                    "properties": {
                        "name": "Higuera St",
                        "type": "primary",
                        "distance": 12.0,
                    },
                    "geometry": {
                        "type": "LineString",
                        "coordinates": [[-120.66, 35.28], [-120.65, 35.29]],
                    },
                },
                {
                    "id": "102",
                    "properties": {"name": "Mission Plaza", "type": "park"},
                    "geometry": {
                        "type": "Polygon",
                        "coordinates": [[[0, 0], [4, 0], [4, 2], [0, 2]]],
                    },
                },
                {
                    "id": "",
                    "properties": {"name": "ATM", "type": "atm", "distance": 3},
                    "geometry": {"type": "Point", "coordinates": [-120.6, 35.2]},
                },
            ]
        }
    }
)


class RoutedUpstream:
    """Answers by path; paths missing from ``bodies`` return HTTP 503."""

    def __init__(self, bodies: dict[str, str | int]) -> None:
        self.bodies = bodies
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        body = self.bodies.get(request.url.path, 503)
        if isinstance(body, int):
            return httpx.Response(body, text="unavailable")
        return httpx.Response(200, text=body)


def _settings(**overrides: Any) -> config.Settings:
    values: dict[str, Any] = {
        "gis_api_base_url": "http://gis.test",
        "request_interval_seconds": 0.0,
        "page_delay_seconds": 0.0,
        "retry_backoff_seconds": 0.0,
    }
    values.update(overrides)
    return config.Settings(**values)


def _run[T](
    handler: RoutedUpstream,
    call: Callable[[gis_api.GISApiService], Awaitable[T]],
    settings: config.Settings | None = None,
) -> T:
    settings = settings or _settings()

    async def run() -> T:
        client = upstream.create_client(
            settings, transport=httpx.MockTransport(handler)
        )
        service = gis_api.GISApiService(
            client, cache.RestaurantCache(client, settings), settings
        )
        try:
            return await call(service)
        finally:
            await client.aclose()

    return asyncio.run(run())


def test_find_nearby_features_decodes_all_geometries() -> None:
    """Test nearby search parameters and mixed geometry decoding."""
    handler = RoutedUpstream({upstream.NEARBY_PATH: NEARBY_BODY})
    result = _run(
        handler,
        lambda s: s.find_nearby_features(
            -120.66, 35.28, 500.0, "mv_restaurants", 3
        ),
    )
    assert result.source is records.Provenance.LIVE
    road, park, atm = result.data
    assert road.geometry_kind is records.GeometryKind.LINESTRING
    assert (road.longitude, road.latitude) == (-120.66, 35.28)
    assert road.distance == 12.0
    assert park.geometry_kind is records.GeometryKind.POLYGON
    assert (park.longitude, park.latitude) == (2.0, 1.0)
    assert atm.osm_id == 0
    assert atm.distance == 3.0

    params = handler.requests[0].url.params
    assert params["lon"] == "-120.66"
    assert params["lat"] == "35.28"
    assert params["distance"] == "500.0"
    assert params["table"] == "mv_restaurants"
    assert params["limit"] == "3"


def test_nearby_defaults() -> None:
    """Test that missing parameters fall back to configured defaults."""
    handler = RoutedUpstream({upstream.NEARBY_PATH: NEARBY_BODY})
    _run(handler, lambda s: s.find_nearby_features(None, None, None, None))
    params = handler.requests[0].url.params
    assert params["lon"] == "-120.6596"
    assert params["lat"] == "35.2828"
    assert params["distance"] == "1000.0"
    assert params["table"] == "mv_restaurants"
    assert params["limit"] == "50"


def test_roads_and_pois_use_their_tables() -> None:
    """Test that roads and POIs query their own datasets."""
    handler = RoutedUpstream({upstream.NEARBY_PATH: NEARBY_BODY})
    _run(handler, lambda s: s.get_roads(limit=5))
    _run(handler, lambda s: s.get_pois(-120.0, 35.0, 250.0))
    assert handler.requests[0].url.params["table"] == "mv_roads"
    assert handler.requests[0].url.params["limit"] == "5"
    assert handler.requests[1].url.params["table"] == "mv_pois"
    assert handler.requests[1].url.params["distance"] == "250.0"


def test_nearby_falls_back_to_samples() -> None:
    """Test that an upstream failure yields sample nearby features."""
    handler = RoutedUpstream({})
    result = _run(
        handler,
        lambda s: s.find_nearby_features(-120.66, 35.28, 500.0, "mv_pois", 1),
    )
    assert result.source is records.Provenance.FALLBACK
    assert result.degraded
    assert [f.name for f in result.data] == ["Sample Restaurant"]


def test_roads_fallback_is_a_linestring() -> None:
    """Test that the roads fallback keeps the roads geometry kind."""
    handler = RoutedUpstream({})
    result = _run(handler, lambda s: s.get_roads())
    assert result.source is records.Provenance.FALLBACK
    [road] = result.data
    assert road.geometry_kind is records.GeometryKind.LINESTRING
    assert road.to_dict()["coordinates"][0] == [road.longitude, road.latitude]


def test_malformed_body_falls_back() -> None:
    """Test that an undecodable body degrades like a network failure."""
    handler = RoutedUpstream({upstream.NEARBY_PATH: "<html>oops</html>"})
    result = _run(handler, lambda s: s.get_pois())
    assert result.source is records.Provenance.FALLBACK
    assert len(result.data) == 2


@pytest.mark.parametrize(
    ("path", "method", "payload"),
    [
        (
            upstream.SPATIAL_SUMMARY_PATH,
            "get_spatial_summary",
            {"restaurants": 12, "roads": 34, "pois": 56},
        ),
        (
            upstream.DATA_STATUS_PATH,
            "get_data_status",
            {"health": "degraded", "record_counts": {"restaurants": 1}},
        ),
        (
            upstream.DATA_METADATA_PATH,
            "get_data_metadata",
            {"layers": [], "coordinate_systems": ["EPSG:3857"]},
        ),
    ],
)
def test_data_objects_pass_through(
    path: str, method: str, payload: dict[str, Any]
) -> None:
    """Test that summary, status and metadata return the data object."""
    handler = RoutedUpstream({path: json.dumps({"data": payload})})
    result = _run(handler, lambda s: getattr(s, method)())
    assert result.source is records.Provenance.LIVE
    assert result.data == payload


def test_data_objects_fall_back() -> None:
    """Test the sample summary, status and metadata payloads."""
    handler = RoutedUpstream({})
    summary = _run(handler, lambda s: s.get_spatial_summary())
    status = _run(handler, lambda s: s.get_data_status())
    metadata = _run(handler, lambda s: s.get_data_metadata())

    assert summary.data == {"restaurants": 710, "roads": 54534, "pois": 3629}
    assert status.data["health"] == "healthy"
    assert status.data["database"]["status"] == "healthy"
    assert [layer["name"] for layer in metadata.data["layers"]] == [
        "restaurants",
        "roads",
        "pois",
    ]
    assert metadata.data["coordinate_systems"][0] == "EPSG:3857"
    assert {summary.source, status.source, metadata.source} == {
        records.Provenance.FALLBACK
    }


def test_rate_limited_call_is_retried() -> None:
    """Test that the facade rides out a transient 429."""
    responses = [
        httpx.Response(429),
        httpx.Response(200, text=json.dumps({"data": {"restaurants": 1}})),
    ]
    calls: list[httpx.Request] = []

    class Flaky(RoutedUpstream):
        def __call__(self, request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return responses.pop(0)

    result = _run(Flaky({}), lambda s: s.get_spatial_summary())
    assert result.source is records.Provenance.LIVE
    assert result.data == {"restaurants": 1}
    assert len(calls) == 2


def test_strict_mode_reraises() -> None:
    """Test that serve_fallback_data=False propagates failures."""
    handler = RoutedUpstream({})
    with pytest.raises(errors.UpstreamError):
        _run(
            handler,
            lambda s: s.get_data_status(),
            settings=_settings(serve_fallback_data=False),
        )


def test_restaurants_from_warm_cache_keep_order() -> None:
    """Test limit=2 on a warm cache of five restaurants."""
    features = [
        {
            "id": str(i),
            "properties": {"name": f"R{i}", "type": "restaurant"},
            "geometry": {"type": "Point", "coordinates": [i * 1000.0, 0.0]},
        }
        for i in (5, 1, 4, 2, 3)
    ]
    pages = iter(
        [
            json.dumps({"data": {"features": features}}),
            json.dumps({"data": {"features": []}}),
        ]
    )

    class Paged(RoutedUpstream):
        def __call__(self, request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return httpx.Response(200, text=next(pages))

    async def call(
        service: gis_api.GISApiService,
    ) -> records.QueryResult[list[records.RestaurantRecord]]:
        await service.restaurant_cache.refresh()
        return await service.get_restaurants(2)

    result = _run(Paged({}), call)
    assert result.source is records.Provenance.CACHED
    assert [r.name for r in result.data] == ["R5", "R1"]
    lon, _ = projection.mercator_to_wgs84(5000.0, 0.0)
    assert result.data[0].longitude == pytest.approx(lon)


def test_deeply_nested_body_falls_back() -> None:
    """Test that a pathologically nested body degrades to samples."""
    depth = 200_000
    nested = '{"data": ' + "[" * depth + "]" * depth + "}"
    handler = RoutedUpstream(
        {upstream.SPATIAL_SUMMARY_PATH: nested, upstream.NEARBY_PATH: nested}
    )
    summary = _run(handler, lambda s: s.get_spatial_summary())
    pois = _run(handler, lambda s: s.get_pois())
    assert summary.source is records.Provenance.FALLBACK
    assert summary.data["restaurants"] == 710
    assert pois.source is records.Provenance.FALLBACK


def _broken_decode(text: str | bytes) -> dict[str, Any]:
    raise RuntimeError("unexpected payload")


def test_unexpected_decode_failure_falls_back(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Test that failures outside the service error hierarchy degrade too."""
    monkeypatch.setattr(decoder, "decode_data_object", _broken_decode)
    handler = RoutedUpstream(
        {upstream.DATA_STATUS_PATH: json.dumps({"data": {"health": "ok"}})}
    )
    result = _run(handler, lambda s: s.get_data_status())
    assert result.source is records.Provenance.FALLBACK
    assert result.data["health"] == "healthy"


def test_unexpected_decode_failure_strict(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Test that strict mode re-raises failures outside the hierarchy."""
    monkeypatch.setattr(decoder, "decode_data_object", _broken_decode)
    handler = RoutedUpstream(
        {upstream.DATA_STATUS_PATH: json.dumps({"data": {"health": "ok"}})}
    )
    with pytest.raises(RuntimeError, match="unexpected payload"):
        _run(
            handler,
            lambda s: s.get_data_status(),
            settings=_settings(serve_fallback_data=False),
        )
