"""Exceptions raised while fetching and decoding upstream GIS data.

The query layer catches :class:`GISServiceError` and degrades to cached or
sample data; with fallbacks disabled the application maps it to HTTP 502.
"""

from __future__ import annotations


class GISServiceError(RuntimeError):
    """Base class for failures talking to or decoding the GIS API."""


class UpstreamError(GISServiceError):
    """Transport failure, non-2xx response or oversize body.

    Attributes:
        status_code: HTTP status of the failed response, None when the
            request never produced one.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RateLimitedError(UpstreamError):
    """The upstream answered HTTP 429 Too Many Requests."""

    def __init__(self, message: str = "Upstream rate limit hit") -> None:
        super().__init__(message, status_code=429)


class RetriesExhaustedError(UpstreamError):
    """Every allowed attempt was rate limited.

    The last :class:`RateLimitedError` is chained as ``__cause__``.
    """

    def __init__(self, attempts: int) -> None:
        super().__init__(
            f"Retries exhausted after {attempts} rate-limited attempts",
            status_code=429,
        )
        self.attempts = attempts


class DecodeError(GISServiceError):
    """The upstream body is not a usable response envelope."""
