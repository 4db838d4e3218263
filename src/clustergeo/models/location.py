"""Permit location model."""

from __future__ import annotations

from pydantic import AliasChoices, Field, field_validator

from clustergeo.models._base import GeoBaseModel, GeoStrEnum


class Priority(GeoStrEnum):
    """Dumpster priority assigned to a permit."""

    LOW = "low"
    MID = "mid"
    HIGH = "high"
    UNKNOWN = "unknown"


class Location(GeoBaseModel):
    """A single permit record returned by the bounded-region location query.

    Parameters
    ----------
    id : int
        Backend row id.
    lat, lng : float
        Coordinates of the permit site.
    name : str
        Display name.
    description : str
        Free-text description.
    record_id : str
        Permit record identifier.
    job_type : str
        Job type used by the filter.
    priority : Priority
        ``low``, ``mid`` or ``high``; anything else maps to ``UNKNOWN``.
    permit_last_updated : str or None
        Last update timestamp as sent by the backend.
    keywords : list of str
        Keywords extracted from the permit.
    permit_status : str or None
        Current permit status.
    """

    id: int
    lat: float
    lng: float
    name: str = ""
    description: str = ""
    record_id: str = ""
    job_type: str = ""
    priority: Priority = Field(
        default=Priority.UNKNOWN,
        validation_alias=AliasChoices("priority", "dumpster_priority", "dumpsterPriority"),
    )
    permit_last_updated: str | None = None
    keywords: list[str] = Field(default_factory=list)
    permit_status: str | None = None

    @field_validator("record_id", "permit_last_updated", mode="before")
    @classmethod
    def _coerce_str(cls, value: object) -> object:
        if isinstance(value, (int, float)):
            return str(value)
        return value

    @field_validator("keywords", mode="before")
    @classmethod
    def _coerce_keywords(cls, value: object) -> object:
        if isinstance(value, list):
            return [str(item) for item in value if item not in (None, "")]
        return value
