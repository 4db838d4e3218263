"""Updates published towards the state store.

The fetch coordinator and the cluster enricher convert everything they
produce into these updates. Only the store is allowed to merge them.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from clustergeo.models.cluster import EnrichedCluster
from clustergeo.models.location import Location
from clustergeo.models.requests import ViewMode
from clustergeo.state.generation import FetchGeneration


class UpdateKind(StrEnum):
    FETCH_STARTED = "fetch_started"
    LOCATIONS = "locations"
    CLUSTERS = "clusters"
    CLUSTER_PATCH = "cluster_patch"
    ENRICHMENT_DONE = "enrichment_done"
    FETCH_FAILED = "fetch_failed"


class MapUpdate(BaseModel):
    """A generation-tagged change to apply to the map state.

    ``CLUSTERS`` replaces the cluster list (placeholders of a new fetch);
    ``CLUSTER_PATCH`` replaces only the clusters it carries, matched by
    ``(job_type, cluster_id)``.
    """

    model_config = ConfigDict(frozen=True)

    generation: FetchGeneration
    kind: UpdateKind
    mode: ViewMode | None = None
    locations: list[Location] = Field(default_factory=list)
    clusters: list[EnrichedCluster] = Field(default_factory=list)
    error: str | None = None
    observed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
