"""Coordinate, bounding box and address models."""

from __future__ import annotations

import math
from collections.abc import Mapping
from typing import Any

from pydantic import AliasChoices, Field, ValidationError, field_validator, model_validator

from clustergeo._constants import COORDINATE_PRECISION
from clustergeo.exceptions import ClusterGeoQueryError
from clustergeo.models._base import GeoBaseModel


def quantize(value: float, precision: int = COORDINATE_PRECISION) -> float:
    """Round *value* to *precision* decimals, folding ``-0.0`` into ``0.0``."""
    return round(value, precision) + 0.0


def _require_finite(value: float) -> float:
    if not math.isfinite(value):
        raise ValueError("coordinate must be finite")
    return value


class Point(GeoBaseModel):
    """A WGS84 coordinate.

    Two points are cache-equivalent when their :attr:`cache_key` matches,
    i.e. both coordinates agree after rounding to four decimals.
    """

    lat: float = Field(validation_alias=AliasChoices("lat", "latitude"), ge=-90.0, le=90.0)
    lng: float = Field(validation_alias=AliasChoices("lng", "lon", "longitude"), ge=-180.0, le=180.0)

    @field_validator("lat", "lng")
    @classmethod
    def _finite(cls, value: float) -> float:
        return _require_finite(value)

    @property
    def cache_key(self) -> str:
        """Quantized ``"lat,lng"`` string used as the geocode cache key."""
        return f"{quantize(self.lat):.{COORDINATE_PRECISION}f},{quantize(self.lng):.{COORDINATE_PRECISION}f}"


class BoundingBox(GeoBaseModel):
    """Rectangular query region in degrees."""

    min_lat: float
    min_lng: float
    max_lat: float
    max_lng: float

    @field_validator("min_lat", "min_lng", "max_lat", "max_lng")
    @classmethod
    def _finite(cls, value: float) -> float:
        return _require_finite(value)

    @model_validator(mode="after")
    def _ordered(self) -> BoundingBox:
        if self.min_lat > self.max_lat:
            raise ValueError("min_lat must not exceed max_lat")
        if self.min_lng > self.max_lng:
            raise ValueError("min_lng must not exceed max_lng")
        return self

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> BoundingBox:
        """Build a box from query-string style parameters.

        Raises :class:`ClusterGeoQueryError` when a bound is missing or
        the values do not describe a valid region.
        """
        required = ("min_lat", "min_lng", "max_lat", "max_lng")
        missing = [key for key in required if params.get(key) in (None, "")]
        if missing:
            raise ClusterGeoQueryError(f"Missing bounding box parameters: {', '.join(missing)}")
        try:
            return cls.model_validate({key: params[key] for key in required})
        except ValidationError as exc:
            raise ClusterGeoQueryError(f"Invalid bounding box parameters: {exc.errors()[0]['msg']}") from exc

    def to_params(self) -> dict[str, float]:
        return {
            "min_lat": self.min_lat,
            "min_lng": self.min_lng,
            "max_lat": self.max_lat,
            "max_lng": self.max_lng,
        }

    def contains(self, point: Point) -> bool:
        return self.min_lat <= point.lat <= self.max_lat and self.min_lng <= point.lng <= self.max_lng

    @property
    def center(self) -> Point:
        return Point(lat=(self.min_lat + self.max_lat) / 2, lng=(self.min_lng + self.max_lng) / 2)


class AddressFacets(GeoBaseModel):
    """Place names resolved for a single point.

    Every field is optional; blank strings are treated as absent.

    Parameters
    ----------
    neighborhood : str or None
        Smallest named area (neighbourhood, suburb, hamlet, ...).
    city : str or None
        City, town or village.
    county : str or None
        County.
    state : str or None
        State or province.
    postal_code : str or None
        Postal code.
    display_name : str or None
        Provider's full formatted address.
    """

    neighborhood: str | None = None
    city: str | None = None
    county: str | None = None
    state: str | None = None
    postal_code: str | None = Field(
        default=None,
        validation_alias=AliasChoices("postal_code", "postalCode", "postcode"),
    )
    display_name: str | None = None

    @field_validator("neighborhood", "city", "county", "state", "postal_code", "display_name", mode="before")
    @classmethod
    def _strip(cls, value: Any) -> str | None:
        if value is None:
            return None
        text = str(value).strip()
        return text or None

    @property
    def is_empty(self) -> bool:
        return not any((self.neighborhood, self.city, self.county, self.state, self.postal_code))
