"""Fetch lifecycle: one authoritative generation per viewport/filter change."""

from __future__ import annotations

import asyncio
import contextlib
import logging

from clustergeo._api.rpc import RegionBackend
from clustergeo.enricher import ClusterEnricher
from clustergeo.exceptions import ClusterGeoError
from clustergeo.models.cluster import EnrichedCluster
from clustergeo.models.geo import BoundingBox
from clustergeo.models.requests import FetchFilters, ViewMode
from clustergeo.state.events import MapUpdate, UpdateKind
from clustergeo.state.generation import FetchGeneration, GenerationCounter
from clustergeo.state.store import MapState, MapStateStore

_logger = logging.getLogger(__name__)


class FetchCoordinator:
    """Turn map events into fetch generations.

    Every trigger advances the generation, cancels the previous fetch and
    starts a new one. Whatever the previous fetch still publishes is
    dropped by the :class:`MapStateStore` because its generation is no
    longer current. Cancelling the previous fetch aborts its query and
    withdraws its queued geocode lookups; lookups already sent to the
    provider finish and fill the cache.

    Usage::

        coordinator = FetchCoordinator(backend, enricher)
        coordinator.store.subscribe(render)
        coordinator.on_move_end(bounds)
    """

    def __init__(
        self,
        backend: RegionBackend,
        enricher: ClusterEnricher,
        *,
        store: MapStateStore | None = None,
        filters: FetchFilters | None = None,
    ) -> None:
        self._backend = backend
        self._enricher = enricher
        self._store = store or MapStateStore(GenerationCounter())
        self._filters = filters or FetchFilters()
        self._region: BoundingBox | None = None
        self._active: asyncio.Task[None] | None = None

    @property
    def store(self) -> MapStateStore:
        return self._store

    @property
    def state(self) -> MapState:
        return self._store.state

    @property
    def generation(self) -> FetchGeneration:
        return self._store.counter.current

    @property
    def is_fetching(self) -> bool:
        return self._active is not None and not self._active.done()

    @property
    def region(self) -> BoundingBox | None:
        return self._region

    @property
    def filters(self) -> FetchFilters:
        return self._filters

    # ------------------------------------------------------------------
    # Triggers
    # ------------------------------------------------------------------

    def on_move_end(self, region: BoundingBox) -> asyncio.Task[None]:
        return self.on_viewport_or_filter_change(region, self._filters)

    def on_zoom_end(self, region: BoundingBox) -> asyncio.Task[None]:
        return self.on_viewport_or_filter_change(region, self._filters)

    def on_filter_change(self, filters: FetchFilters) -> asyncio.Task[None] | None:
        """Refresh with new filters; ``None`` until a region is known."""
        if self._region is None:
            self._filters = filters
            return None
        return self.on_viewport_or_filter_change(self._region, filters)

    def on_viewport_or_filter_change(self, region: BoundingBox, filters: FetchFilters) -> asyncio.Task[None]:
        """Start a new fetch generation and return its task.

        Must be called from a running event loop.
        """
        self._region = region
        self._filters = filters

        generation = self._store.counter.advance()
        previous = self._active
        if previous is not None and not previous.done():
            _logger.debug("Cancelling fetch superseded by %s", generation)
            previous.cancel()

        self._store.apply(MapUpdate(generation=generation, kind=UpdateKind.FETCH_STARTED, mode=filters.mode))
        task = asyncio.get_running_loop().create_task(
            self._run(generation, region, filters),
            name=f"clustergeo-fetch-{generation.value}",
        )
        self._active = task
        return task

    async def refresh(self, region: BoundingBox, filters: FetchFilters | None = None) -> MapState:
        """Run one fetch to completion and return the resulting state."""
        task = self.on_viewport_or_filter_change(region, filters or self._filters)
        try:
            await task
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
            # Superseded by a newer trigger.
        return self.state

    async def aclose(self) -> None:
        task = self._active
        self._active = None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    # ------------------------------------------------------------------
    # Fetch cycle
    # ------------------------------------------------------------------

    async def _run(self, generation: FetchGeneration, region: BoundingBox, filters: FetchFilters) -> None:
        try:
            if filters.mode == ViewMode.LOCATIONS:
                locations = await self._backend.fetch_locations(region, filters.job_type_filter)
                _logger.debug("%s: %d locations", generation, len(locations))
                self._store.apply(MapUpdate(generation=generation, kind=UpdateKind.LOCATIONS, locations=locations))
                return

            raw_clusters = await self._backend.fetch_clusters(region)
        except ClusterGeoError as exc:
            _logger.warning("Error fetching %s for %s: %s", filters.mode, generation, exc)
            self._store.apply(MapUpdate(generation=generation, kind=UpdateKind.FETCH_FAILED, error=str(exc)))
            return
        except Exception as exc:
            _logger.exception("Unexpected failure fetching %s for %s", filters.mode, generation)
            self._store.apply(
                MapUpdate(generation=generation, kind=UpdateKind.FETCH_FAILED, error=f"{type(exc).__name__}: {exc}")
            )
            return

        _logger.debug("%s: %d raw clusters", generation, len(raw_clusters))
        first = True

        # Placeholders arrive first and replace the list; later calls patch it.
        def _on_partial_update(tagged: FetchGeneration, clusters: list[EnrichedCluster]) -> None:
            nonlocal first
            kind = UpdateKind.CLUSTERS if first else UpdateKind.CLUSTER_PATCH
            first = False
            self._store.apply(MapUpdate(generation=tagged, kind=kind, clusters=clusters))

        await self._enricher.enrich(raw_clusters, generation, _on_partial_update)
        self._store.apply(MapUpdate(generation=generation, kind=UpdateKind.ENRICHMENT_DONE))
