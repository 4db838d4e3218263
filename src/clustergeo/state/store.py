"""Authoritative, presentation-facing map state.

This is the only component allowed to merge published updates.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from pydantic import BaseModel, ConfigDict, Field

from clustergeo.models.cluster import ClusterKey, EnrichedCluster
from clustergeo.models.location import Location
from clustergeo.models.requests import ViewMode
from clustergeo.state.events import MapUpdate, UpdateKind
from clustergeo.state.generation import FetchGeneration, GenerationCounter

_logger = logging.getLogger(__name__)


class MapState(BaseModel):
    """Snapshot delivered to the presentation layer.

    ``loading`` is true between a trigger and the query response;
    ``enriching`` stays true until every representative point of the
    current clusters has been geocoded.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    generation: FetchGeneration = Field(default_factory=lambda: FetchGeneration(0))
    mode: ViewMode = ViewMode.CLUSTERS
    locations: list[Location] = Field(default_factory=list)
    clusters: list[EnrichedCluster] = Field(default_factory=list)
    loading: bool = False
    enriching: bool = False
    error: str | None = None

    def cluster(self, key: ClusterKey) -> EnrichedCluster | None:
        for cluster in self.clusters:
            if cluster.key == key:
                return cluster
        return None


StateListener = Callable[[MapState], None]


class MapStateStore:
    """Merge generation-tagged updates into a :class:`MapState`.

    Updates whose generation is not the counter's current one are dropped
    without touching the state or notifying listeners.
    """

    def __init__(self, counter: GenerationCounter) -> None:
        self._counter = counter
        self._state = MapState()
        self._clusters: dict[ClusterKey, EnrichedCluster] = {}
        self._listeners: list[StateListener] = []
        self.dropped = 0

    @property
    def state(self) -> MapState:
        return self._state

    @property
    def counter(self) -> GenerationCounter:
        return self._counter

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register *listener*; returns a callable that unregisters it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def apply(self, update: MapUpdate) -> bool:
        """Apply *update* if it belongs to the current generation.

        Returns ``True`` when the update was applied.
        """
        if not self._counter.is_current(update.generation):
            self.dropped += 1
            _logger.debug(
                "Dropping %s update from %s (current %s)",
                update.kind,
                update.generation,
                self._counter.current,
            )
            return False

        state = self._state
        if update.generation != state.generation:
            state = state.model_copy(update={"generation": update.generation, "error": None})

        if update.kind == UpdateKind.FETCH_STARTED:
            state = state.model_copy(
                update={"mode": update.mode or state.mode, "loading": True, "enriching": False, "error": None}
            )
        elif update.kind == UpdateKind.LOCATIONS:
            self._clusters = {}
            state = state.model_copy(
                update={
                    "mode": ViewMode.LOCATIONS,
                    "locations": list(update.locations),
                    "clusters": [],
                    "loading": False,
                    "enriching": False,
                }
            )
        elif update.kind == UpdateKind.CLUSTERS:
            self._clusters = {cluster.key: cluster for cluster in update.clusters}
            state = state.model_copy(
                update={
                    "mode": ViewMode.CLUSTERS,
                    "locations": [],
                    "clusters": list(self._clusters.values()),
                    "loading": False,
                    "enriching": bool(self._clusters),
                }
            )
        elif update.kind == UpdateKind.CLUSTER_PATCH:
            changed = False
            for cluster in update.clusters:
                if cluster.key in self._clusters:
                    self._clusters[cluster.key] = cluster
                    changed = True
            if not changed:
                return False
            state = state.model_copy(update={"clusters": list(self._clusters.values())})
        elif update.kind == UpdateKind.ENRICHMENT_DONE:
            state = state.model_copy(update={"enriching": False})
        elif update.kind == UpdateKind.FETCH_FAILED:
            state = state.model_copy(update={"loading": False, "enriching": False, "error": update.error})

        self._state = state
        self._notify(state)
        return True

    def _notify(self, state: MapState) -> None:
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                _logger.exception("Map state listener %r failed", listener)
