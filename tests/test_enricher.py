from __future__ import annotations

import asyncio

import pytest

from clustergeo.enricher import ClusterEnricher, select_representative_points
from clustergeo.models.cluster import ClusterKey, EnrichedCluster, RawCluster
from clustergeo.models.geo import AddressFacets, Point
from clustergeo.state.generation import FetchGeneration

from conftest import FakeResolver

GEN = FetchGeneration(3)


def _cluster(cluster_id: int, coords: list[tuple[float, float]] | None, job_type: str = "roofing") -> RawCluster:
    return RawCluster(
        job_type=job_type,
        cluster_id=cluster_id,
        total_points=len(coords or []),
        center_lat=32.8,
        center_lng=-96.8,
        location_coords=[Point(lat=lat, lng=lng) for lat, lng in coords] if coords is not None else None,
    )


class Recorder:
    def __init__(self) -> None:
        self.updates: list[tuple[FetchGeneration, list[EnrichedCluster]]] = []

    def __call__(self, generation: FetchGeneration, clusters: list[EnrichedCluster]) -> None:
        self.updates.append((generation, clusters))

    def history(self, key: ClusterKey) -> list[EnrichedCluster]:
        return [cluster for _, batch in self.updates for cluster in batch if cluster.key == key]


def test_representative_points_are_capped_and_fall_back_to_centroid() -> None:
    many = _cluster(1, [(32.0 + i / 100, -96.0) for i in range(15)])
    bare = _cluster(2, None)
    empty = _cluster(3, [])

    assert len(select_representative_points(many, 10)) == 10
    assert select_representative_points(many, 10)[0] == Point(lat=32.0, lng=-96.0)
    assert select_representative_points(bare) == [Point(lat=32.8, lng=-96.8)]
    assert select_representative_points(empty) == [Point(lat=32.8, lng=-96.8)]


@pytest.mark.asyncio
async def test_placeholders_are_published_before_any_lookup_finishes() -> None:
    resolver = FakeResolver()
    resolver.gates["32.8000,-96.8000"] = asyncio.Event()
    recorder = Recorder()
    enricher = ClusterEnricher(resolver)
    clusters = [_cluster(1, None), _cluster(2, None, job_type="plumbing")]

    task = asyncio.create_task(enricher.enrich(clusters, GEN, recorder))
    await asyncio.sleep(0)

    assert len(recorder.updates) == 1
    generation, placeholders = recorder.updates[0]
    assert generation == GEN
    assert [cluster.key for cluster in placeholders] == [ClusterKey("roofing", 1), ClusterKey("plumbing", 2)]
    assert all(cluster.area_name == "pending" for cluster in placeholders)

    resolver.gates["32.8000,-96.8000"].set()
    final = await task
    assert all(cluster.area_name == "Unknown Area" for cluster in final)


@pytest.mark.asyncio
async def test_point_shared_by_two_clusters_is_resolved_once_for_both() -> None:
    shared = Point(lat=32.7812, lng=-96.797)
    resolver = FakeResolver({shared.cache_key: AddressFacets(neighborhood="Downtown", city="Dallas")})
    recorder = Recorder()
    first = _cluster(1, [(32.7812, -96.797)])
    second = _cluster(1, [(32.78121, -96.79699)], job_type="plumbing")

    final = await ClusterEnricher(resolver).enrich([first, second], GEN, recorder)

    assert resolver.calls == [shared.cache_key]
    assert [cluster.area_name for cluster in final] == ["Downtown (Dallas)", "Downtown (Dallas)"]
    assert len(recorder.updates) == 2
    assert {cluster.key for cluster in recorder.updates[1][1]} == {first.key, second.key}


@pytest.mark.asyncio
async def test_duplicate_points_within_a_cluster_count_once() -> None:
    resolver = FakeResolver({"32.7812,-96.7970": AddressFacets(city="Dallas")})
    cluster = _cluster(1, [(32.7812, -96.797), (32.78119, -96.79701)])

    final = await ClusterEnricher(resolver).enrich([cluster], GEN, Recorder())

    assert resolver.calls == ["32.7812,-96.7970"]
    assert final[0].area_name == "Dallas"


@pytest.mark.asyncio
async def test_only_the_first_points_are_geocoded() -> None:
    resolver = FakeResolver()
    cluster = _cluster(1, [(32.0 + i / 100, -96.0) for i in range(15)])

    await ClusterEnricher(resolver, max_points=10).enrich([cluster], GEN, Recorder())

    assert len(resolver.calls) == 10


@pytest.mark.asyncio
async def test_facets_only_grow_across_partial_updates() -> None:
    coords = [(32.71, -96.8), (32.72, -96.8), (32.73, -96.8)]
    resolver = FakeResolver(
        {
            "32.7100,-96.8000": AddressFacets(neighborhood="Oak Cliff", city="Dallas", postal_code="75208"),
            "32.7200,-96.8000": AddressFacets(neighborhood="Bishop Arts", city="Dallas", state="Texas"),
            "32.7300,-96.8000": AddressFacets(neighborhood="Kessler", county="Dallas County"),
        }
    )
    recorder = Recorder()
    cluster = _cluster(1, coords)

    final = await ClusterEnricher(resolver).enrich([cluster], GEN, recorder)

    history = recorder.history(cluster.key)
    sizes = [len(snapshot.neighborhoods) for snapshot in history]
    assert sizes == sorted(sizes)
    assert history[0].area_name == "pending"
    assert history[1].area_name != "pending"
    assert sorted(final[0].neighborhoods) == ["Bishop Arts", "Kessler", "Oak Cliff"]
    assert final[0].cities == ["Dallas"]
    assert final[0].counties == ["Dallas County"]
    assert final[0].postal_codes == ["75208"]
    assert final[0].state == "Texas"
    assert final[0].area_name.endswith(" +1 more (Dallas)")


@pytest.mark.asyncio
async def test_cluster_without_any_names_ends_as_unknown_area() -> None:
    resolver = FakeResolver()
    recorder = Recorder()
    cluster = _cluster(1, [(32.71, -96.8), (32.72, -96.8)])

    final = await ClusterEnricher(resolver).enrich([cluster], GEN, recorder)

    assert final[0].area_name == "Unknown Area"
    assert [snapshot.area_name for snapshot in recorder.history(cluster.key)] == ["pending", "Unknown Area"]


@pytest.mark.asyncio
async def test_published_snapshots_are_never_mutated() -> None:
    resolver = FakeResolver(
        {
            "32.7100,-96.8000": AddressFacets(neighborhood="Oak Cliff"),
            "32.7200,-96.8000": AddressFacets(neighborhood="Kessler"),
        }
    )
    recorder = Recorder()
    cluster = _cluster(1, [(32.71, -96.8), (32.72, -96.8)])

    await ClusterEnricher(resolver).enrich([cluster], GEN, recorder)

    history = recorder.history(cluster.key)
    assert history[0].neighborhoods == []
    assert len(history[1].neighborhoods) == 1
    assert len(history[2].neighborhoods) == 2


@pytest.mark.asyncio
async def test_failing_callback_does_not_stop_enrichment() -> None:
    resolver = FakeResolver({"32.7100,-96.8000": AddressFacets(city="Dallas")})

    def _explode(generation: FetchGeneration, clusters: list[EnrichedCluster]) -> None:
        raise RuntimeError("listener bug")

    final = await ClusterEnricher(resolver).enrich([_cluster(1, [(32.71, -96.8)])], GEN, _explode)

    assert final[0].area_name == "Dallas"


@pytest.mark.asyncio
async def test_empty_batch_publishes_an_empty_placeholder_list() -> None:
    recorder = Recorder()

    assert await ClusterEnricher(FakeResolver()).enrich([], GEN, recorder) == []
    assert recorder.updates == [(GEN, [])]


@pytest.mark.asyncio
async def test_cancelling_enrichment_cancels_outstanding_lookups() -> None:
    resolver = FakeResolver()
    gate = asyncio.Event()
    resolver.gates["32.7100,-96.8000"] = gate
    task = asyncio.create_task(ClusterEnricher(resolver).enrich([_cluster(1, [(32.71, -96.8)])], GEN, Recorder()))
    await asyncio.sleep(0)
    await asyncio.sleep(0)

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert resolver.calls == ["32.7100,-96.8000"]
    assert not gate.is_set()
