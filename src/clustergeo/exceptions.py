"""Custom exception hierarchy for clustergeo."""

from __future__ import annotations


class ClusterGeoError(Exception):
    """Base exception for all clustergeo errors."""


class ClusterGeoConfigError(ClusterGeoError):
    """Invalid or missing configuration."""


class ClusterGeoQueryError(ClusterGeoError, ValueError):
    """Missing or invalid query parameters.

    Raised before any network call is made.
    """


class ClusterGeoTransportError(ClusterGeoError):
    """HTTP-level failure (network, non-2xx, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class ClusterGeoRateLimitError(ClusterGeoTransportError):
    """The provider throttled the request (HTTP 429)."""


class ClusterGeoApiError(ClusterGeoError):
    """A well-formed response whose content cannot be used."""

    def __init__(self, message: str, *, endpoint: str = "") -> None:
        self.endpoint = endpoint
        super().__init__(message)
