"""Spherical Web Mercator conversions.

The upstream restaurant feed emits EPSG:3857 coordinates while the map
frontend consumes EPSG:4326 degrees. Both directions use the spherical
Earth model of Web Mercator (radius 6378137 m).

Example:
    >>> from app.utils.projection import mercator_to_wgs84
    >>> mercator_to_wgs84(0.0, 0.0)
    (0.0, 0.0)
    >>> lon, lat = mercator_to_wgs84(-13431590.0, 4201800.0)
    >>> # lon ~ -120.658, lat ~ 35.27 (San Luis Obispo)

The inverse is total: NaN propagates to NaN, an infinite easting gives an
infinite longitude, and northings beyond the range where ``sinh``
overflows clamp to +/-90 degrees of latitude.
"""

from __future__ import annotations

import math

EARTH_RADIUS_M = 6378137.0

# atan(sinh(v)) is pi/2 to double precision long before sinh overflows
_SINH_SATURATION = 700.0


def mercator_to_wgs84(x: float, y: float) -> tuple[float, float]:
    """Convert Web Mercator meters to (longitude, latitude) degrees.

    Args:
        x: Easting in meters (EPSG:3857).
        y: Northing in meters (EPSG:3857).

    Returns:
        Tuple of (longitude, latitude) in EPSG:4326 degrees.
    """
    longitude = math.degrees(x / EARTH_RADIUS_M)
    v = y / EARTH_RADIUS_M
    if abs(v) > _SINH_SATURATION:
        return longitude, math.copysign(90.0, v)
    latitude = math.degrees(math.atan(math.sinh(v)))
    return longitude, latitude


def wgs84_to_mercator(longitude: float, latitude: float) -> tuple[float, float]:
    """Convert (longitude, latitude) degrees to Web Mercator meters.

    Only meaningful inside the Web Mercator latitude range (about +/-85.05
    degrees); the poles map to infinity.

    Args:
        longitude: Longitude in degrees.
        latitude: Latitude in degrees.

    Returns:
        Tuple of (x, y) in EPSG:3857 meters.
    """
    x = math.radians(longitude) * EARTH_RADIUS_M
    y = math.asinh(math.tan(math.radians(latitude))) * EARTH_RADIUS_M
    return x, y
