"""Cluster enrichment: representative point sampling, fan-out and folding."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Protocol

from clustergeo._constants import MAX_REPRESENTATIVE_POINTS, PENDING_AREA_NAME
from clustergeo.models.cluster import ClusterKey, EnrichedCluster, RawCluster
from clustergeo.models.geo import AddressFacets, Point
from clustergeo.naming import compute_area_name
from clustergeo.state.generation import FetchGeneration

_logger = logging.getLogger(__name__)

PartialUpdate = Callable[[FetchGeneration, list[EnrichedCluster]], None]


class PointResolver(Protocol):
    async def resolve(self, point: Point) -> AddressFacets | None: ...


def select_representative_points(cluster: RawCluster, limit: int = MAX_REPRESENTATIVE_POINTS) -> list[Point]:
    """Points geocoded to describe *cluster*.

    The first *limit* member coordinates when the backend sent any,
    otherwise the centroid.
    """
    if cluster.location_coords:
        return list(cluster.location_coords[:limit])
    return [cluster.centroid]


def _append_unique(target: list[str], value: str | None) -> bool:
    if value is None or value in target:
        return False
    target.append(value)
    return True


@dataclass
class _ClusterAccumulator:
    """Facets folded so far for one cluster of the batch.

    Only ever grows. Never handed out; :meth:`snapshot` copies it.
    """

    raw: RawCluster
    outstanding: int
    neighborhoods: list[str] = field(default_factory=list)
    cities: list[str] = field(default_factory=list)
    counties: list[str] = field(default_factory=list)
    postal_codes: list[str] = field(default_factory=list)
    state: str | None = None

    def fold(self, facets: AddressFacets | None) -> bool:
        """Merge one point's facets; returns ``True`` if anything new was learned."""
        self.outstanding -= 1
        if facets is None:
            return False
        changed = _append_unique(self.neighborhoods, facets.neighborhood)
        changed = _append_unique(self.cities, facets.city) or changed
        changed = _append_unique(self.counties, facets.county) or changed
        changed = _append_unique(self.postal_codes, facets.postal_code) or changed
        if self.state is None and facets.state is not None:
            self.state = facets.state
            changed = True
        return changed

    @property
    def area_name(self) -> str:
        if self.outstanding > 0 and not self.neighborhoods and not self.cities:
            return PENDING_AREA_NAME
        return compute_area_name(self.neighborhoods, self.cities)

    def snapshot(self) -> EnrichedCluster:
        return EnrichedCluster.model_validate(
            {
                **self.raw.model_dump(),
                "area_name": self.area_name,
                "neighborhoods": list(self.neighborhoods),
                "cities": list(self.cities),
                "counties": list(self.counties),
                "postal_codes": list(self.postal_codes),
                "state": self.state,
            }
        )


class ClusterEnricher:
    """Annotate a batch of clusters with reverse geocoded place names.

    :meth:`enrich` publishes placeholders first, then one partial update
    each time a representative point settles. Points shared by several
    clusters of the batch are geocoded once and routed to all of them.
    """

    def __init__(self, resolver: PointResolver, *, max_points: int = MAX_REPRESENTATIVE_POINTS) -> None:
        self._resolver = resolver
        self._max_points = max_points

    async def enrich(
        self,
        raw_clusters: Sequence[RawCluster],
        generation: FetchGeneration,
        on_partial_update: PartialUpdate,
    ) -> list[EnrichedCluster]:
        """Enrich *raw_clusters* and return the final snapshots.

        *on_partial_update* receives ``(generation, changed_clusters)``.
        The first call carries every cluster as a placeholder and happens
        before this coroutine first suspends.
        """
        accumulators: dict[ClusterKey, _ClusterAccumulator] = {}
        routes: dict[str, tuple[Point, list[ClusterKey]]] = {}

        for raw in raw_clusters:
            points = select_representative_points(raw, self._max_points)
            seen: set[str] = set()
            for point in points:
                if point.cache_key in seen:
                    continue
                seen.add(point.cache_key)
                _, owners = routes.setdefault(point.cache_key, (point, []))
                owners.append(raw.key)
            accumulators[raw.key] = _ClusterAccumulator(raw=raw, outstanding=len(seen))

        placeholders = [EnrichedCluster.placeholder(acc.raw) for acc in accumulators.values()]
        self._publish(on_partial_update, generation, placeholders)
        if not routes:
            return placeholders

        _logger.debug(
            "%s: enriching %d clusters with %d distinct points",
            generation,
            len(accumulators),
            len(routes),
        )

        async def _resolve(cache_key: str, point: Point) -> tuple[str, AddressFacets | None]:
            return cache_key, await self._resolver.resolve(point)

        tasks = [asyncio.ensure_future(_resolve(key, point)) for key, (point, _) in routes.items()]
        try:
            for next_done in asyncio.as_completed(tasks):
                cache_key, facets = await next_done
                changed: list[EnrichedCluster] = []
                for owner in routes[cache_key][1]:
                    acc = accumulators[owner]
                    learned = acc.fold(facets)
                    # The last settled point turns "pending" into a final name even without facets.
                    if learned or acc.outstanding == 0:
                        changed.append(acc.snapshot())
                if changed:
                    self._publish(on_partial_update, generation, changed)
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()

        return [acc.snapshot() for acc in accumulators.values()]

    @staticmethod
    def _publish(callback: PartialUpdate, generation: FetchGeneration, clusters: list[EnrichedCluster]) -> None:
        try:
            callback(generation, clusters)
        except Exception:
            _logger.exception("Partial update callback failed for %s", generation)
