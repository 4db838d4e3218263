"""clustergeo - Async enrichment of map clusters with reverse geocoded place names."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("clustergeo")
except PackageNotFoundError:
    __version__ = "0+local"
from clustergeo.cache import CacheEntry, GeocodeCache
from clustergeo.client import ClusterGeo
from clustergeo.config import ClusterGeoConfig
from clustergeo.coordinator import FetchCoordinator
from clustergeo.enricher import ClusterEnricher, select_representative_points
from clustergeo.exceptions import (
    ClusterGeoApiError,
    ClusterGeoConfigError,
    ClusterGeoError,
    ClusterGeoQueryError,
    ClusterGeoRateLimitError,
    ClusterGeoTransportError,
)
from clustergeo.geocoder import GeocodeClient
from clustergeo.models import (
    AddressFacets,
    BoundingBox,
    ClusterKey,
    EnrichedCluster,
    FetchFilters,
    Location,
    Point,
    Priority,
    RawCluster,
    ViewMode,
)
from clustergeo.naming import compute_area_name
from clustergeo.rate_limit import RateLimiter
from clustergeo.state import FetchGeneration, GenerationCounter, MapState, MapStateStore

__all__ = [
    "__version__",
    "AddressFacets",
    "BoundingBox",
    "CacheEntry",
    "ClusterEnricher",
    "ClusterGeo",
    "ClusterGeoApiError",
    "ClusterGeoConfig",
    "ClusterGeoConfigError",
    "ClusterGeoError",
    "ClusterGeoQueryError",
    "ClusterGeoRateLimitError",
    "ClusterGeoTransportError",
    "ClusterKey",
    "EnrichedCluster",
    "FetchCoordinator",
    "FetchFilters",
    "FetchGeneration",
    "GenerationCounter",
    "GeocodeCache",
    "GeocodeClient",
    "Location",
    "MapState",
    "MapStateStore",
    "Point",
    "Priority",
    "RateLimiter",
    "RawCluster",
    "ViewMode",
    "compute_area_name",
    "select_representative_points",
]
