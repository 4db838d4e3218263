from __future__ import annotations

import asyncio

import pytest

from clustergeo.cache import GeocodeCache
from clustergeo.config import ClusterGeoConfig
from clustergeo.coordinator import FetchCoordinator
from clustergeo.enricher import ClusterEnricher
from clustergeo.exceptions import ClusterGeoTransportError
from clustergeo.geocoder import GeocodeClient
from clustergeo.models.cluster import ClusterKey, RawCluster
from clustergeo.models.geo import AddressFacets, BoundingBox, Point
from clustergeo.models.location import Location
from clustergeo.models.requests import FetchFilters, ViewMode
from clustergeo.rate_limit import RateLimiter
from clustergeo.state import MapState

from conftest import FakeNominatim, FakeResolver, nominatim_payload

DALLAS = BoundingBox(min_lat=32.7, min_lng=-96.9, max_lat=32.9, max_lng=-96.7)
PLANO = BoundingBox(min_lat=33.0, min_lng=-96.8, max_lat=33.1, max_lng=-96.6)


def _cluster(cluster_id: int, lat: float, lng: float, job_type: str = "roofing") -> RawCluster:
    return RawCluster(
        job_type=job_type,
        cluster_id=cluster_id,
        total_points=1,
        center_lat=lat,
        center_lng=lng,
        location_coords=[Point(lat=lat, lng=lng)],
    )


class FakeBackend:
    """``RegionBackend`` double returning canned rows per region."""

    def __init__(self) -> None:
        self.clusters: dict[BoundingBox, list[RawCluster]] = {}
        self.locations: list[Location] = []
        self.error: Exception | None = None
        self.gates: dict[BoundingBox, asyncio.Event] = {}
        self.location_calls: list[tuple[BoundingBox, str | None]] = []
        self.cluster_calls: list[BoundingBox] = []

    async def fetch_locations(self, bounds: BoundingBox, job_type: str | None = None) -> list[Location]:
        self.location_calls.append((bounds, job_type))
        if self.error is not None:
            raise self.error
        return list(self.locations)

    async def fetch_clusters(self, bounds: BoundingBox) -> list[RawCluster]:
        self.cluster_calls.append(bounds)
        gate = self.gates.get(bounds)
        if gate is not None:
            await gate.wait()
        if self.error is not None:
            raise self.error
        return list(self.clusters.get(bounds, []))


def _coordinator(backend: FakeBackend, resolver: FakeResolver) -> FetchCoordinator:
    return FetchCoordinator(backend, ClusterEnricher(resolver))


@pytest.mark.asyncio
async def test_clusters_are_published_as_placeholders_then_named() -> None:
    backend = FakeBackend()
    backend.clusters[DALLAS] = [_cluster(1, 32.78, -96.8), _cluster(2, 32.85, -96.75)]
    resolver = FakeResolver(
        {
            "32.7800,-96.8000": AddressFacets(neighborhood="Downtown", city="Dallas"),
            "32.8500,-96.7500": AddressFacets(city="Dallas"),
        }
    )
    coordinator = _coordinator(backend, resolver)
    seen: list[MapState] = []
    coordinator.store.subscribe(seen.append)

    state = await coordinator.refresh(DALLAS)

    assert seen[0].loading
    placeholders = next(s for s in seen if s.clusters)
    assert [c.area_name for c in placeholders.clusters] == ["pending", "pending"]
    assert state.cluster(ClusterKey("roofing", 1)).area_name == "Downtown (Dallas)"
    assert state.cluster(ClusterKey("roofing", 2)).area_name == "Dallas"
    assert not state.loading
    assert not state.enriching
    assert not coordinator.is_fetching


@pytest.mark.asyncio
async def test_superseded_fetch_never_reaches_the_state() -> None:
    backend = FakeBackend()
    backend.clusters[DALLAS] = [_cluster(1, 32.78, -96.8)]
    backend.clusters[PLANO] = [_cluster(5, 33.05, -96.7)]
    backend.gates[DALLAS] = asyncio.Event()
    resolver = FakeResolver({"33.0500,-96.7000": AddressFacets(city="Plano")})
    coordinator = _coordinator(backend, resolver)
    seen: list[MapState] = []
    coordinator.store.subscribe(seen.append)

    stale = coordinator.on_move_end(DALLAS)
    await asyncio.sleep(0)
    current = coordinator.on_move_end(PLANO)
    backend.gates[DALLAS].set()
    await current

    assert stale.cancelled()
    assert coordinator.generation.value == 2
    assert all(c.cluster_id == 5 for s in seen for c in s.clusters)
    assert coordinator.state.cluster(ClusterKey("roofing", 5)).area_name == "Plano"
    assert "32.7800,-96.8000" not in resolver.calls


@pytest.mark.asyncio
async def test_enrichment_of_superseded_fetch_is_abandoned() -> None:
    backend = FakeBackend()
    backend.clusters[DALLAS] = [_cluster(1, 32.78, -96.8)]
    backend.clusters[PLANO] = [_cluster(1, 33.05, -96.7)]
    resolver = FakeResolver(
        {
            "32.7800,-96.8000": AddressFacets(city="Dallas"),
            "33.0500,-96.7000": AddressFacets(city="Plano"),
        }
    )
    resolver.gates["32.7800,-96.8000"] = asyncio.Event()
    coordinator = _coordinator(backend, resolver)

    stale = coordinator.on_move_end(DALLAS)
    for _ in range(5):
        await asyncio.sleep(0)
    assert coordinator.state.cluster(ClusterKey("roofing", 1)).is_pending

    state = await coordinator.refresh(PLANO)
    resolver.gates["32.7800,-96.8000"].set()
    await asyncio.sleep(0)

    assert stale.cancelled()
    assert state.cluster(ClusterKey("roofing", 1)).area_name == "Plano"
    assert coordinator.state.cluster(ClusterKey("roofing", 1)).area_name == "Plano"


@pytest.mark.asyncio
async def test_locations_mode_passes_job_type_filter() -> None:
    backend = FakeBackend()
    backend.locations = [Location(id=1, lat=32.8, lng=-96.8, job_type="roofing")]
    coordinator = _coordinator(backend, FakeResolver())

    state = await coordinator.refresh(DALLAS, FetchFilters(mode=ViewMode.LOCATIONS))
    assert backend.location_calls == [(DALLAS, None)]
    assert state.mode == ViewMode.LOCATIONS
    assert [location.id for location in state.locations] == [1]
    assert state.clusters == []

    await coordinator.refresh(DALLAS, FetchFilters(mode=ViewMode.LOCATIONS, job_type="roofing"))
    assert backend.location_calls[-1] == (DALLAS, "roofing")
    assert backend.cluster_calls == []


@pytest.mark.asyncio
async def test_query_failure_surfaces_error_and_keeps_previous_data() -> None:
    backend = FakeBackend()
    backend.clusters[DALLAS] = [_cluster(1, 32.78, -96.8)]
    coordinator = _coordinator(backend, FakeResolver())
    await coordinator.refresh(DALLAS)

    backend.error = ClusterGeoTransportError("HTTP 500 from rpc", status_code=500)
    state = await coordinator.refresh(DALLAS)

    assert state.error == "HTTP 500 from rpc"
    assert not state.loading
    assert [c.cluster_id for c in state.clusters] == [1]


@pytest.mark.asyncio
async def test_filter_change_waits_for_a_region() -> None:
    backend = FakeBackend()
    coordinator = _coordinator(backend, FakeResolver())
    locations = FetchFilters(mode=ViewMode.LOCATIONS)

    assert coordinator.on_filter_change(locations) is None
    assert coordinator.filters == locations
    assert coordinator.generation.value == 0

    await coordinator.on_zoom_end(DALLAS)
    assert backend.location_calls == [(DALLAS, None)]

    await coordinator.on_filter_change(FetchFilters(mode=ViewMode.CLUSTERS))
    assert backend.cluster_calls == [DALLAS]
    assert coordinator.region == DALLAS


@pytest.mark.asyncio
async def test_aclose_cancels_active_fetch() -> None:
    backend = FakeBackend()
    backend.gates[DALLAS] = asyncio.Event()
    coordinator = _coordinator(backend, FakeResolver())

    task = coordinator.on_move_end(DALLAS)
    await asyncio.sleep(0)
    await coordinator.aclose()

    assert task.cancelled()
    assert coordinator.state.loading


@pytest.mark.asyncio
async def test_unexpected_backend_failure_ends_loading() -> None:
    backend = FakeBackend()
    backend.error = ValueError("bad row")
    coordinator = _coordinator(backend, FakeResolver())

    state = await coordinator.refresh(DALLAS)

    assert state.error == "ValueError: bad row"
    assert not state.loading
    assert not coordinator.is_fetching


@pytest.mark.asyncio
async def test_back_to_back_triggers_over_shared_points_converge_to_real_names() -> None:
    downtown = Point(lat=32.78, lng=-96.8)
    uptown = Point(lat=32.8, lng=-96.8)
    backend = FakeBackend()
    backend.clusters[DALLAS] = [_cluster(1, downtown.lat, downtown.lng), _cluster(2, uptown.lat, uptown.lng)]
    fake = FakeNominatim(
        {
            downtown.cache_key: nominatim_payload(neighbourhood="Downtown", city="Dallas"),
            uptown.cache_key: nominatim_payload(neighbourhood="Uptown", city="Dallas"),
        }
    )
    fake.gate = asyncio.Event()
    limiter = RateLimiter(0.0)
    geocoder = GeocodeClient(ClusterGeoConfig(min_interval=0.0), cache=GeocodeCache(), limiter=limiter, transport=fake)
    coordinator = FetchCoordinator(backend, ClusterEnricher(geocoder))

    first = coordinator.on_move_end(DALLAS)
    for _ in range(5):
        await asyncio.sleep(0)
    assert limiter.pending == 1

    second = coordinator.on_move_end(DALLAS)
    fake.gate.set()
    await second
    await limiter.aclose()

    assert first.cancelled()
    state = coordinator.state
    assert state.cluster(ClusterKey("roofing", 1)).area_name == "Downtown (Dallas)"
    assert state.cluster(ClusterKey("roofing", 2)).area_name == "Uptown (Dallas)"
    assert not state.enriching
    assert fake.calls == [downtown.cache_key, uptown.cache_key]
