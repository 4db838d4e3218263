"""Nominatim reverse geocoding endpoint.

Endpoint:
  - GET /reverse?format=json&lat=..&lon=..&zoom=18&addressdetails=1
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from clustergeo._constants import CITY_KEYS, NEIGHBORHOOD_KEYS
from clustergeo._transport import Transport
from clustergeo.config import ClusterGeoConfig
from clustergeo.exceptions import ClusterGeoApiError
from clustergeo.models.geo import AddressFacets, Point

_logger = logging.getLogger(__name__)

REVERSE_ENDPOINT = "/reverse"


def _first_present(address: Mapping[str, Any], keys: tuple[str, ...]) -> str | None:
    for key in keys:
        value = address.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def build_reverse_params(point: Point) -> dict[str, str | int | float]:
    return {
        "format": "json",
        "lat": point.lat,
        "lon": point.lng,
        "zoom": 18,
        "addressdetails": 1,
    }


def parse_reverse_response(payload: Any, *, endpoint: str = REVERSE_ENDPOINT) -> AddressFacets:
    """Map a Nominatim reverse payload onto :class:`AddressFacets`.

    The smallest named area wins for ``neighborhood`` (neighbourhood,
    suburb, hamlet, ... down to village); ``city`` falls back to town and
    village. Missing fields stay ``None``.
    """
    if not isinstance(payload, dict):
        raise ClusterGeoApiError(f"{endpoint} returned {type(payload).__name__}, expected object", endpoint=endpoint)
    if "error" in payload:
        raise ClusterGeoApiError(f"{endpoint} failed: {payload['error']}", endpoint=endpoint)
    address = payload.get("address")
    if not isinstance(address, dict):
        raise ClusterGeoApiError(f"{endpoint} response has no address details", endpoint=endpoint)

    return AddressFacets(
        neighborhood=_first_present(address, NEIGHBORHOOD_KEYS),
        city=_first_present(address, CITY_KEYS),
        county=address.get("county"),
        state=address.get("state"),
        postal_code=address.get("postcode"),
        display_name=payload.get("display_name"),
    )


async def fetch_reverse(config: ClusterGeoConfig, transport: Transport, point: Point) -> AddressFacets:
    """Resolve *point* with a single provider call (no cache, no retry)."""
    url = f"{config.geocoder_url.rstrip('/')}{REVERSE_ENDPOINT}"
    payload = await transport.get_json(
        url,
        params=build_reverse_params(point),
        headers={"user-agent": config.user_agent},
    )
    facets = parse_reverse_response(payload, endpoint=url)
    _logger.debug("Reverse geocoded %s -> %s", point.cache_key, facets.model_dump(exclude_none=True))
    return facets
