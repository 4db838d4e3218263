"""Data models for backend, geocoder and pipeline records."""

from clustergeo.models._base import GeoBaseModel, GeoStrEnum
from clustergeo.models.cluster import ClusterKey, EnrichedCluster, RawCluster
from clustergeo.models.geo import AddressFacets, BoundingBox, Point, quantize
from clustergeo.models.location import Location, Priority
from clustergeo.models.requests import ClusterQuery, FetchFilters, LocationQuery, ViewMode

__all__ = [
    "AddressFacets",
    "BoundingBox",
    "ClusterKey",
    "ClusterQuery",
    "EnrichedCluster",
    "FetchFilters",
    "GeoBaseModel",
    "GeoStrEnum",
    "Location",
    "LocationQuery",
    "Point",
    "Priority",
    "RawCluster",
    "ViewMode",
    "quantize",
]
