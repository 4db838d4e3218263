from __future__ import annotations

import asyncio
from collections.abc import Mapping
from typing import Any

import pytest

from clustergeo.exceptions import ClusterGeoTransportError
from clustergeo.models.geo import AddressFacets, Point


class FakeClock:
    """Monotonic clock whose ``sleep`` advances time instantly."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


def nominatim_payload(**address: str) -> dict[str, Any]:
    return {"display_name": ", ".join(address.values()), "address": dict(address)}


class FakeNominatim:
    """Transport double answering reverse lookups from a table keyed by cache key.

    ``responses`` values are either payload dicts or exceptions to raise.
    When ``gate`` is set, every call waits for it before answering.
    """

    def __init__(self, responses: Mapping[str, Any] | None = None) -> None:
        self.responses: dict[str, Any] = dict(responses or {})
        self.calls: list[str] = []
        self.headers: list[Mapping[str, str]] = []
        self.gate: asyncio.Event | None = None

    async def get_json(
        self,
        url: str,
        *,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> Any:
        assert params is not None
        key = Point(lat=params["lat"], lng=params["lon"]).cache_key
        self.calls.append(key)
        self.headers.append(dict(headers or {}))
        if self.gate is not None:
            await self.gate.wait()
        response = self.responses.get(key)
        if response is None:
            raise ClusterGeoTransportError(f"HTTP 500 from {url}", status_code=500, endpoint=url)
        if isinstance(response, list):
            response = response.pop(0) if len(response) > 1 else response[0]
        if isinstance(response, BaseException):
            raise response
        return response

    async def post_json(self, url: str, payload: Mapping[str, Any], *, headers: Mapping[str, str] | None = None) -> Any:
        raise AssertionError(f"Unexpected POST {url}")


class FakeResolver:
    """``PointResolver`` double answering from a table keyed by cache key."""

    def __init__(self, facets: Mapping[str, AddressFacets | None] | None = None) -> None:
        self.facets: dict[str, AddressFacets | None] = dict(facets or {})
        self.calls: list[str] = []
        self.gates: dict[str, asyncio.Event] = {}

    async def resolve(self, point: Point) -> AddressFacets | None:
        key = point.cache_key
        self.calls.append(key)
        gate = self.gates.get(key)
        if gate is not None:
            await gate.wait()
        return self.facets.get(key)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
