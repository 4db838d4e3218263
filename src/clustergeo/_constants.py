"""Internal constants shared across the library."""

GEOCODER_URL = "https://nominatim.openstreetmap.org"
USER_AGENT = "PermitClusterApp/1.0"

#: Minimum seconds between two provider calls. The public Nominatim
#: policy is one request per second; the extra 100 ms absorbs jitter.
DEFAULT_MIN_INTERVAL: float = 1.1

#: Resolved addresses are reused for a week.
DEFAULT_CACHE_TTL: float = 7 * 24 * 3600
DEFAULT_CACHE_MAX_ENTRIES = 10_000

#: Decimal places kept when quantizing a coordinate (~11 m).
COORDINATE_PRECISION = 4

# ------------------------------------------------------------------
# Provider throttling (HTTP 429) backoff
# ------------------------------------------------------------------

DEFAULT_MAX_RETRIES = 3
DEFAULT_BACKOFF_BASE: float = 1.0
DEFAULT_BACKOFF_FACTOR: float = 2.0
DEFAULT_BACKOFF_JITTER: float = 1.0

DEFAULT_REQUEST_TIMEOUT: float = 15.0

# ------------------------------------------------------------------
# Enrichment
# ------------------------------------------------------------------

MAX_REPRESENTATIVE_POINTS = 10
PENDING_AREA_NAME = "pending"
UNKNOWN_AREA_NAME = "Unknown Area"
ALL_JOB_TYPES = "all"

# ------------------------------------------------------------------
# Backend RPC
# ------------------------------------------------------------------

LOCATIONS_RPC = "get_locations_in_bounds"
CLUSTERS_RPC = "get_location_clusters"
DEFAULT_CLUSTER_EPS_KM: float = 10.0
DEFAULT_CLUSTER_MIN_POINTS = 2

# Nominatim address keys, most specific first.
NEIGHBORHOOD_KEYS: tuple[str, ...] = (
    "neighbourhood",
    "suburb",
    "hamlet",
    "quarter",
    "city_district",
    "city_division",
    "locality",
    "town",
    "village",
)
CITY_KEYS: tuple[str, ...] = ("city", "town", "village")
