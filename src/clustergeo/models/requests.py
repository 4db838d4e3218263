"""Pydantic request models for pipeline entrypoints.

These models provide a consistent "validate → normalize → execute" flow.
They are used internally by the backend and the fetch coordinator.
"""

from __future__ import annotations

import enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from clustergeo._constants import ALL_JOB_TYPES
from clustergeo.models.geo import BoundingBox


class ViewMode(enum.StrEnum):
    """Which data source a refresh queries."""

    LOCATIONS = "locations"
    CLUSTERS = "clusters"


class _Request(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        validate_default=True,
        str_strip_whitespace=True,
    )


class FetchFilters(_Request):
    """User-controlled filters that select and narrow the query."""

    mode: ViewMode = ViewMode.CLUSTERS
    job_type: str = ALL_JOB_TYPES

    @field_validator("job_type")
    @classmethod
    def _job_type_non_empty(cls, value: str) -> str:
        return value or ALL_JOB_TYPES

    @property
    def job_type_filter(self) -> str | None:
        """The job type to filter on, or ``None`` for all job types."""
        return None if self.job_type == ALL_JOB_TYPES else self.job_type


class LocationQuery(_Request):
    bounds: BoundingBox
    job_type: str | None = None

    def to_rpc_params(self) -> dict[str, Any]:
        return {**self.bounds.to_params(), "filter_job_type": self.job_type or None}


class ClusterQuery(_Request):
    bounds: BoundingBox
    eps_km: float = Field(default=10.0, gt=0)
    min_points: int = Field(default=2, ge=1)

    def to_rpc_params(self) -> dict[str, Any]:
        return {**self.bounds.to_params(), "eps_km": self.eps_km, "min_points": self.min_points}
