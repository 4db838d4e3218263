"""In-memory reverse geocode cache keyed by quantized coordinates."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from clustergeo._constants import DEFAULT_CACHE_MAX_ENTRIES, DEFAULT_CACHE_TTL
from clustergeo.models.geo import AddressFacets, Point

_logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CacheEntry:
    """A resolved address and the wall-clock time it was resolved at."""

    facets: AddressFacets
    resolved_at: float


class GeocodeCache:
    """Map quantized points to previously resolved addresses.

    Entries older than *ttl* seconds read as misses. Expired entries are
    only swept when a write pushes the cache above *max_entries*; the
    sweep removes expired entries only, so the cache may stay above the
    threshold while everything in it is fresh.
    """

    def __init__(
        self,
        *,
        ttl: float = DEFAULT_CACHE_TTL,
        max_entries: int = DEFAULT_CACHE_MAX_ENTRIES,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._ttl = ttl
        self._max_entries = max_entries
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, point: object) -> bool:
        return isinstance(point, Point) and self.get(point) is not None

    def _is_expired(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.resolved_at >= self._ttl

    def get(self, point: Point) -> AddressFacets | None:
        key = point.cache_key
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._is_expired(entry, self._clock()):
            del self._entries[key]
            return None
        return entry.facets

    def put(self, point: Point, facets: AddressFacets) -> None:
        self._entries[point.cache_key] = CacheEntry(facets=facets, resolved_at=self._clock())
        if len(self._entries) > self._max_entries:
            self.evict_expired()

    def evict_expired(self) -> int:
        """Drop every expired entry and return how many were removed."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if self._is_expired(entry, now)]
        for key in expired:
            del self._entries[key]
        if expired:
            _logger.debug("Evicted %d expired geocode cache entries (%d left)", len(expired), len(self._entries))
        return len(expired)

    def clear(self) -> None:
        self._entries.clear()
