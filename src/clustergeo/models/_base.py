"""Base model and enum for backend and geocoder payloads.

Every wire model inherits from :class:`GeoBaseModel` which provides:

* snake_case field names that also accept the camelCase spelling, so
  both the raw PostgREST rows and JSON produced by other clients validate.
* A ``model_validator(mode="before")`` that strips empty strings,
  whitespace-only strings and NaN so the field default is used.
* ``extra="ignore"``: unknown keys are dropped at the boundary.

String enums inherit from :class:`GeoStrEnum` which adds a ``_missing_``
hook returning ``UNKNOWN`` for any value without a mapped member.
"""

from __future__ import annotations

import enum
import math
from typing import Any

from pydantic import AliasChoices, AliasGenerator, BaseModel, ConfigDict, model_validator
from pydantic.alias_generators import to_camel


def _snake_or_camel(field_name: str) -> AliasChoices:
    return AliasChoices(field_name, to_camel(field_name))


class GeoStrEnum(enum.StrEnum):
    """Base for string enums received from the backend.

    Every subclass **must** define ``UNKNOWN``.
    """

    @classmethod
    def _missing_(cls, value: object) -> GeoStrEnum:
        if isinstance(value, str):
            lowered = value.strip().lower()
            for member in cls:
                if member.value == lowered:
                    return member
        unknown: GeoStrEnum = cls["UNKNOWN"]
        return unknown


class GeoBaseModel(BaseModel):
    """Base for wire records.

    Instances are frozen; use ``model_copy(update=...)`` to derive.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=AliasGenerator(validation_alias=_snake_or_camel),
    )

    @staticmethod
    def _clean_dict(values: dict[str, Any]) -> dict[str, Any]:
        cleaned: dict[str, Any] = {}
        for key, value in values.items():
            if value is None:
                continue
            if isinstance(value, str) and not value.strip():
                continue
            if isinstance(value, float) and math.isnan(value):
                continue
            cleaned[key] = value
        return cleaned

    @model_validator(mode="before")
    @classmethod
    def _drop_empty_values(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        return GeoBaseModel._clean_dict(values)
