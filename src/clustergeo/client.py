"""High-level entrypoint wiring the enrichment pipeline together."""

from __future__ import annotations

import logging
from typing import Any

import aiohttp

from clustergeo._api.rpc import RegionBackend, RpcBackend
from clustergeo._transport import HttpTransport, Transport
from clustergeo.cache import GeocodeCache
from clustergeo.config import ClusterGeoConfig
from clustergeo.coordinator import FetchCoordinator
from clustergeo.enricher import ClusterEnricher
from clustergeo.exceptions import ClusterGeoError
from clustergeo.geocoder import GeocodeClient
from clustergeo.models.geo import AddressFacets, BoundingBox, Point
from clustergeo.models.requests import FetchFilters
from clustergeo.rate_limit import RateLimiter
from clustergeo.state.store import MapState, StateListener

_logger = logging.getLogger(__name__)


class ClusterGeo:
    """Owns one cache, one rate limiter and one coordinator.

    Usage::

        async with ClusterGeo(ClusterGeoConfig.from_env()) as geo:
            geo.subscribe(render)
            state = await geo.refresh(BoundingBox(min_lat=32.7, min_lng=-96.9, max_lat=32.9, max_lng=-96.7))

    The cache lives as long as this object and is shared by every fetch
    it runs; an owned limiter and session are recreated when the object
    is entered again after closing. A custom *backend* or *transport* may be
    injected, e.g. for tests.
    """

    def __init__(
        self,
        config: ClusterGeoConfig,
        *,
        session: aiohttp.ClientSession | None = None,
        transport: Transport | None = None,
        backend: RegionBackend | None = None,
        cache: GeocodeCache | None = None,
        limiter: RateLimiter | None = None,
    ) -> None:
        self._config = config
        self._external_session = session is not None
        self._http_session = session
        self._transport = transport
        self._external_transport = transport is not None
        self._backend = backend
        self._external_backend = backend is not None
        self._external_limiter = limiter is not None
        self.cache = cache or GeocodeCache(ttl=config.cache_ttl, max_entries=config.cache_max_entries)
        self.limiter = limiter or RateLimiter(config.min_interval)
        self._geocoder: GeocodeClient | None = None
        self._coordinator: FetchCoordinator | None = None

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> ClusterGeo:
        if self.limiter.closed:
            if self._external_limiter:
                raise ClusterGeoError("The injected RateLimiter is closed and cannot be reused")
            self.limiter = RateLimiter(self._config.min_interval)
        if self._transport is None:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            self._transport = HttpTransport(
                self._http_session,
                timeout=self._config.request_timeout,
                trace=self._config.api_trace_enabled,
            )
        if self._backend is None:
            self._backend = RpcBackend(self._config, self._transport)

        self._geocoder = GeocodeClient(
            self._config,
            cache=self.cache,
            limiter=self.limiter,
            transport=self._transport,
        )
        enricher = ClusterEnricher(self._geocoder, max_points=self._config.max_representative_points)
        self._coordinator = FetchCoordinator(self._backend, enricher)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        if self._coordinator is not None:
            await self._coordinator.aclose()
        await self.limiter.aclose()
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
        if not self._external_transport:
            self._transport = None
        if not self._external_backend:
            self._backend = None
        self._coordinator = None
        self._geocoder = None

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def coordinator(self) -> FetchCoordinator:
        if self._coordinator is None:
            raise ClusterGeoError("Pipeline not initialized. Use 'async with ClusterGeo(...) as geo:'")
        return self._coordinator

    @property
    def geocoder(self) -> GeocodeClient:
        if self._geocoder is None:
            raise ClusterGeoError("Pipeline not initialized. Use 'async with ClusterGeo(...) as geo:'")
        return self._geocoder

    @property
    def state(self) -> MapState:
        return self.coordinator.state

    def subscribe(self, listener: StateListener) -> Any:
        """Call *listener* with every authoritative state change."""
        return self.coordinator.store.subscribe(listener)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def refresh(self, region: BoundingBox, filters: FetchFilters | None = None) -> MapState:
        """Fetch *region* and wait until its clusters are fully enriched."""
        return await self.coordinator.refresh(region, filters)

    async def reverse_geocode(self, point: Point) -> AddressFacets | None:
        """Resolve a single point through the shared cache and limiter."""
        return await self.geocoder.resolve(point)
