"""Cluster models: the raw backend record and its enriched snapshot."""

from __future__ import annotations

from typing import NamedTuple

from pydantic import Field, field_validator

from clustergeo._constants import PENDING_AREA_NAME
from clustergeo.models._base import GeoBaseModel
from clustergeo.models.geo import Point


class ClusterKey(NamedTuple):
    """Identity of a cluster within one fetch response."""

    job_type: str
    cluster_id: int


class RawCluster(GeoBaseModel):
    """A pre-computed cluster as returned by the cluster RPC.

    ``cluster_id`` values are only unique per ``job_type`` within one
    response; the upstream clustering may reassign them on every call.
    """

    job_type: str
    cluster_id: int
    total_points: int = 0
    center_lat: float
    center_lng: float
    keywords: list[str] = Field(default_factory=list)
    location_ids: list[int] | None = None
    location_coords: list[Point] | None = None

    @field_validator("keywords", mode="before")
    @classmethod
    def _coerce_keywords(cls, value: object) -> object:
        if isinstance(value, list):
            return [str(item) for item in value if item not in (None, "")]
        return value

    @property
    def key(self) -> ClusterKey:
        return ClusterKey(self.job_type, self.cluster_id)

    @property
    def centroid(self) -> Point:
        return Point(lat=self.center_lat, lng=self.center_lng)


class EnrichedCluster(RawCluster):
    """A raw cluster annotated with the place names found so far.

    Facet lists are deduplicated and keep first-seen order. Instances are
    immutable snapshots: every partial update publishes a new one.
    """

    area_name: str = PENDING_AREA_NAME
    neighborhoods: list[str] = Field(default_factory=list)
    cities: list[str] = Field(default_factory=list)
    counties: list[str] = Field(default_factory=list)
    postal_codes: list[str] = Field(default_factory=list)
    state: str | None = None

    @classmethod
    def placeholder(cls, raw: RawCluster) -> EnrichedCluster:
        """Snapshot of *raw* with no place names resolved yet."""
        return cls.model_validate(raw.model_dump())

    @property
    def is_pending(self) -> bool:
        return self.area_name == PENDING_AREA_NAME

    @property
    def neighborhood(self) -> str | None:
        return ", ".join(self.neighborhoods) if self.neighborhoods else None

    @property
    def city(self) -> str | None:
        return self.cities[0] if self.cities else None

    @property
    def county(self) -> str | None:
        return self.counties[0] if self.counties else None

    @property
    def postal_code(self) -> str | None:
        return self.postal_codes[0] if self.postal_codes else None
