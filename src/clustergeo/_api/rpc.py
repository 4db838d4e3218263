"""Bounded-region queries served as PostgREST RPC functions.

Endpoints:
  - POST /rest/v1/rpc/get_locations_in_bounds
  - POST /rest/v1/rpc/get_location_clusters
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

from pydantic import ValidationError

from clustergeo._constants import CLUSTERS_RPC, LOCATIONS_RPC
from clustergeo._transport import Transport
from clustergeo.config import ClusterGeoConfig
from clustergeo.exceptions import ClusterGeoApiError
from clustergeo.models.cluster import RawCluster
from clustergeo.models.geo import BoundingBox
from clustergeo.models.location import Location
from clustergeo.models.requests import ClusterQuery, LocationQuery

_logger = logging.getLogger(__name__)


class RegionBackend(Protocol):
    """The two bounded-region queries the fetch coordinator depends on."""

    async def fetch_locations(self, bounds: BoundingBox, job_type: str | None = None) -> list[Location]: ...

    async def fetch_clusters(self, bounds: BoundingBox) -> list[RawCluster]: ...


def _rows(endpoint: str, decoded: Any) -> list[dict[str, Any]]:
    if decoded is None:
        return []
    if isinstance(decoded, dict):
        # PostgREST error objects carry code/message/details.
        message = decoded.get("message") or decoded.get("error") or decoded
        raise ClusterGeoApiError(f"{endpoint} failed: {message}", endpoint=endpoint)
    if not isinstance(decoded, list):
        raise ClusterGeoApiError(f"{endpoint} returned {type(decoded).__name__}, expected list", endpoint=endpoint)
    return [row for row in decoded if isinstance(row, dict)]


class RpcBackend:
    """:class:`RegionBackend` backed by PostgREST (e.g. Supabase) RPC calls."""

    def __init__(self, config: ClusterGeoConfig, transport: Transport) -> None:
        self._base_url, self._anon_key = config.require_backend()
        self._config = config
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        return {
            "apikey": self._anon_key,
            "authorization": f"Bearer {self._anon_key}",
            "content-type": "application/json",
        }

    async def _call(self, function: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        endpoint = f"{self._base_url}/rest/v1/rpc/{function}"
        decoded = await self._transport.post_json(endpoint, params, headers=self._headers())
        return _rows(endpoint, decoded)

    async def fetch_locations(self, bounds: BoundingBox, job_type: str | None = None) -> list[Location]:
        """Permit locations inside *bounds*, optionally for one job type."""
        query = LocationQuery(bounds=bounds, job_type=job_type)
        rows = await self._call(LOCATIONS_RPC, query.to_rpc_params())
        locations: list[Location] = []
        for row in rows:
            try:
                locations.append(Location.model_validate(row))
            except ValidationError:
                _logger.warning("Skipping malformed location row id=%s", row.get("id"), exc_info=True)
        return locations

    async def fetch_clusters(self, bounds: BoundingBox) -> list[RawCluster]:
        """Pre-computed clusters inside *bounds*."""
        query = ClusterQuery(
            bounds=bounds,
            eps_km=self._config.cluster_eps_km,
            min_points=self._config.cluster_min_points,
        )
        rows = await self._call(CLUSTERS_RPC, query.to_rpc_params())
        clusters: list[RawCluster] = []
        for row in rows:
            try:
                clusters.append(RawCluster.model_validate(row))
            except ValidationError:
                _logger.warning(
                    "Skipping malformed cluster row job_type=%s cluster_id=%s",
                    row.get("job_type"),
                    row.get("cluster_id"),
                    exc_info=True,
                )
        return clusters
