"""Client configuration for clustergeo."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from clustergeo._constants import (
    DEFAULT_BACKOFF_BASE,
    DEFAULT_BACKOFF_FACTOR,
    DEFAULT_CACHE_MAX_ENTRIES,
    DEFAULT_CACHE_TTL,
    DEFAULT_CLUSTER_EPS_KM,
    DEFAULT_CLUSTER_MIN_POINTS,
    DEFAULT_MAX_RETRIES,
    DEFAULT_MIN_INTERVAL,
    DEFAULT_REQUEST_TIMEOUT,
    GEOCODER_URL,
    MAX_REPRESENTATIVE_POINTS,
    USER_AGENT,
)
from clustergeo.exceptions import ClusterGeoConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_number(env_key: str, value: str, kind: type[int] | type[float]) -> int | float:
    try:
        return kind(value)
    except ValueError as exc:
        raise ClusterGeoConfigError(f"{env_key} must be a number, got {value!r}") from exc


@dataclasses.dataclass(frozen=True)
class ClusterGeoConfig:
    """Pipeline configuration.

    Parameters
    ----------
    backend_url : str or None
        Base URL of the PostgREST backend serving the location and
        cluster RPCs (e.g. ``"https://xyz.supabase.co"``).
    backend_anon_key : str or None
        Anonymous API key sent as ``apikey`` and bearer token.
    geocoder_url : str
        Base URL of the Nominatim-compatible reverse geocoder.
    user_agent : str
        ``User-Agent`` sent to the geocoder, as its usage policy requires.
    min_interval : float
        Minimum seconds between the start of two geocoder calls.
    cache_ttl : float
        Seconds a resolved address stays valid in the cache.
    cache_max_entries : int
        Cache size above which expired entries are swept on write.
    max_retries : int
        Retries after an HTTP 429 before a lookup is given up.
    backoff_base : float
        Delay in seconds before the first 429 retry.
    backoff_factor : float
        Multiplier applied to the delay for each further retry.
    request_timeout : float
        Total timeout in seconds for a single HTTP request.
    cluster_eps_km : float
        Clustering radius passed to the cluster RPC.
    cluster_min_points : int
        Minimum points per cluster passed to the cluster RPC.
    max_representative_points : int
        Upper bound of sampled points geocoded per cluster.
    cancel_stale_lookups : bool
        Withdraw queued (not yet dispatched) lookups of a superseded fetch.
    api_trace_enabled : bool
        Log redacted request/response bodies at DEBUG level.
    """

    backend_url: str | None = None
    backend_anon_key: str | None = None
    geocoder_url: str = GEOCODER_URL
    user_agent: str = USER_AGENT
    min_interval: float = DEFAULT_MIN_INTERVAL
    cache_ttl: float = DEFAULT_CACHE_TTL
    cache_max_entries: int = DEFAULT_CACHE_MAX_ENTRIES
    max_retries: int = DEFAULT_MAX_RETRIES
    backoff_base: float = DEFAULT_BACKOFF_BASE
    backoff_factor: float = DEFAULT_BACKOFF_FACTOR
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    cluster_eps_km: float = DEFAULT_CLUSTER_EPS_KM
    cluster_min_points: int = DEFAULT_CLUSTER_MIN_POINTS
    max_representative_points: int = MAX_REPRESENTATIVE_POINTS
    cancel_stale_lookups: bool = True
    api_trace_enabled: bool = False

    def __post_init__(self) -> None:
        if self.min_interval < 0:
            raise ClusterGeoConfigError("min_interval must be >= 0")
        if self.cache_ttl <= 0:
            raise ClusterGeoConfigError("cache_ttl must be > 0")
        if self.cache_max_entries < 1:
            raise ClusterGeoConfigError("cache_max_entries must be >= 1")
        if self.max_retries < 0:
            raise ClusterGeoConfigError("max_retries must be >= 0")
        if self.max_representative_points < 1:
            raise ClusterGeoConfigError("max_representative_points must be >= 1")

    def require_backend(self) -> tuple[str, str]:
        """Return ``(backend_url, backend_anon_key)`` or raise if unset."""
        if not self.backend_url or not self.backend_anon_key:
            raise ClusterGeoConfigError("Backend URL or anon key is missing from the configuration.")
        return self.backend_url.rstrip("/"), self.backend_anon_key

    @classmethod
    def from_env(cls, **overrides: Any) -> ClusterGeoConfig:
        """Create configuration from environment variables.

        Reads ``CLUSTERGEO_*`` variables. Explicit keyword arguments
        override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        ClusterGeoConfig
            Populated configuration.
        """
        env = os.environ

        _ENV_STR_MAP = {
            "CLUSTERGEO_BACKEND_URL": "backend_url",
            "CLUSTERGEO_BACKEND_ANON_KEY": "backend_anon_key",
            "CLUSTERGEO_GEOCODER_URL": "geocoder_url",
            "CLUSTERGEO_USER_AGENT": "user_agent",
        }
        _ENV_NUMBER_MAP: dict[str, tuple[str, type[int] | type[float]]] = {
            "CLUSTERGEO_MIN_INTERVAL": ("min_interval", float),
            "CLUSTERGEO_CACHE_TTL": ("cache_ttl", float),
            "CLUSTERGEO_CACHE_MAX_ENTRIES": ("cache_max_entries", int),
            "CLUSTERGEO_MAX_RETRIES": ("max_retries", int),
            "CLUSTERGEO_BACKOFF_BASE": ("backoff_base", float),
            "CLUSTERGEO_BACKOFF_FACTOR": ("backoff_factor", float),
            "CLUSTERGEO_REQUEST_TIMEOUT": ("request_timeout", float),
            "CLUSTERGEO_CLUSTER_EPS_KM": ("cluster_eps_km", float),
            "CLUSTERGEO_CLUSTER_MIN_POINTS": ("cluster_min_points", int),
            "CLUSTERGEO_MAX_REPRESENTATIVE_POINTS": ("max_representative_points", int),
        }

        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        for env_key, (field_name, kind) in _ENV_NUMBER_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = _env_number(env_key, val, kind)

        if "cancel_stale_lookups" not in overrides:
            config_kwargs["cancel_stale_lookups"] = _env_bool(env.get("CLUSTERGEO_CANCEL_STALE_LOOKUPS"), True)

        if "api_trace_enabled" not in overrides:
            config_kwargs["api_trace_enabled"] = _env_bool(
                env.get("CLUSTERGEO_API_TRACE_ENABLED"),
                False,
            )

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
