"""Reverse geocoding through cache, rate limiter and provider."""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from clustergeo._api.nominatim import fetch_reverse
from clustergeo._constants import DEFAULT_BACKOFF_JITTER
from clustergeo._transport import Transport
from clustergeo.cache import GeocodeCache
from clustergeo.config import ClusterGeoConfig
from clustergeo.exceptions import ClusterGeoError, ClusterGeoRateLimitError
from clustergeo.models.geo import AddressFacets, Point
from clustergeo.rate_limit import RateLimiter

_logger = logging.getLogger(__name__)

PointLookup = Callable[[Point], Awaitable[AddressFacets]]


@dataclass(slots=True)
class _InflightLookup:
    """A queued or running provider call shared by every caller of one key."""

    future: asyncio.Future[AddressFacets | None]
    waiters: int = 0
    dispatched: bool = False


class GeocodeClient:
    """Resolve points to :class:`AddressFacets`.

    Order of resolution for a point:

    1. the cache (hits never touch the rate limiter),
    2. an in-flight lookup of the same cache key, which is awaited instead
       of issuing a second provider call,
    3. a new provider call scheduled on the rate limiter. HTTP 429 replies
       are retried with exponential backoff plus jitter while the limiter
       slot is held.

    :meth:`resolve` returns ``None`` when no address could be obtained; it
    never raises for provider failures.
    """

    def __init__(
        self,
        config: ClusterGeoConfig,
        *,
        cache: GeocodeCache,
        limiter: RateLimiter,
        transport: Transport | None = None,
        lookup: PointLookup | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: random.Random | None = None,
    ) -> None:
        if lookup is None:
            if transport is None:
                raise ValueError("GeocodeClient needs a transport or a lookup callable")

            async def lookup(point: Point) -> AddressFacets:
                return await fetch_reverse(config, transport, point)

        self._config = config
        self._cache = cache
        self._limiter = limiter
        self._lookup = lookup
        self._sleep = sleep
        self._rng = rng or random.Random()
        self._inflight: dict[str, _InflightLookup] = {}

    @property
    def cache(self) -> GeocodeCache:
        return self._cache

    @property
    def limiter(self) -> RateLimiter:
        return self._limiter

    @property
    def inflight(self) -> int:
        """Number of distinct cache keys with a queued or running lookup."""
        return len(self._inflight)

    def backoff_delay(self, attempt: int) -> float:
        """Seconds to wait before retry number ``attempt + 1``."""
        config = self._config
        return config.backoff_base * config.backoff_factor**attempt + self._rng.random() * DEFAULT_BACKOFF_JITTER

    async def resolve(self, point: Point) -> AddressFacets | None:
        cached = self._cache.get(point)
        if cached is not None:
            return cached

        key = point.cache_key
        entry = self._inflight.get(key)
        if entry is None or entry.future.cancelled():
            try:
                entry = self._schedule(key, point)
            except ClusterGeoError as exc:
                _logger.warning("Cannot schedule geocode lookup for %s: %s", key, exc)
                return None

        entry.waiters += 1
        try:
            return await asyncio.shield(entry.future)
        except asyncio.CancelledError:
            task = asyncio.current_task()
            if entry.future.cancelled() and task is not None and not task.cancelling():
                # Limiter shut down underneath us.
                return None
            self._withdraw(key, entry)
            raise
        except Exception:
            _logger.exception("Unexpected failure while geocoding %s", key)
            return None
        finally:
            entry.waiters -= 1

    def _schedule(self, key: str, point: Point) -> _InflightLookup:
        entry: _InflightLookup | None = None

        async def _task() -> AddressFacets | None:
            assert entry is not None  # noqa: S101
            entry.dispatched = True
            return await self._lookup_with_retry(point)

        entry = _InflightLookup(future=self._limiter.schedule(_task))
        self._inflight[key] = entry
        entry.future.add_done_callback(lambda _fut: self._forget(key, entry))
        return entry

    def _forget(self, key: str, entry: _InflightLookup) -> None:
        if self._inflight.get(key) is entry:
            del self._inflight[key]

    def _withdraw(self, key: str, entry: _InflightLookup) -> None:
        """Drop a queued lookup once its last interested caller is cancelled."""
        if entry.waiters > 1 or entry.dispatched or not self._config.cancel_stale_lookups:
            return
        if not entry.future.done():
            _logger.debug("Withdrawing queued geocode lookup for %s", key)
            self._forget(key, entry)
            entry.future.cancel()

    async def _lookup_with_retry(self, point: Point) -> AddressFacets | None:
        key = point.cache_key
        max_retries = self._config.max_retries
        attempt = 0
        while True:
            try:
                facets = await self._lookup(point)
            except ClusterGeoRateLimitError:
                if attempt >= max_retries:
                    _logger.warning("Geocoding %s still throttled after %d retries, giving up", key, max_retries)
                    return None
                delay = self.backoff_delay(attempt)
                attempt += 1
                _logger.info("Geocoding %s throttled (429), retry %d/%d in %.1fs", key, attempt, max_retries, delay)
                await self._sleep(delay)
                continue
            except ClusterGeoError as exc:
                _logger.warning("Geocoding %s failed: %s", key, exc)
                return None

            self._cache.put(point, facets)
            return facets
