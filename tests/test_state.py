from __future__ import annotations

import asyncio

import pytest

from fleettrack.models.location import LocationView
from fleettrack.models.poll import PollOutcome, TelemetryClass
from fleettrack.state.latest import LatestLocationsCache
from fleettrack.state.metadata import MetadataCache
from fleettrack.state.poll_log import PollResultLog
from fleettrack.storage import MemoryLocationStore


class _Clock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class _CountingStore(MemoryLocationStore):
    def __init__(self) -> None:
        super().__init__()
        self.upserts = 0

    async def upsert_vehicle(self, vehicle_id, **kwargs):  # type: ignore[no-untyped-def]
        self.upserts += 1
        return await super().upsert_vehicle(vehicle_id, **kwargs)


def _view(vehicle_id: str) -> LocationView:
    return LocationView(
        id=vehicle_id,
        name=vehicle_id,
        color="#3b82f6",
        lat=1.0,
        lon=2.0,
        speed=0.0,
        heading=0.0,
        status="stopped",
        timestamp="2024-05-01T12:00:00Z",
    )


@pytest.mark.asyncio
async def test_metadata_cache_seeds_from_storage_and_falls_back_on_miss() -> None:
    store = MemoryLocationStore()
    await store.upsert_vehicle("v1", name="Truck 1", color="#ff0000")

    cache = MetadataCache(store, default_color="#3b82f6")
    assert await cache.load() == 1
    assert cache.loaded

    assert cache.get("v1").name == "Truck 1"
    fallback = cache.get("v9")
    assert (fallback.name, fallback.color) == ("v9", "#3b82f6")
    assert not cache.contains("v9")


@pytest.mark.asyncio
async def test_metadata_ensure_only_writes_once_per_vehicle() -> None:
    store = _CountingStore()
    cache = MetadataCache(store)

    first = await cache.ensure("asset-1", default_color="#10b981")
    second = await cache.ensure("asset-1", default_color="#10b981")

    assert first == second
    assert first.color == "#10b981"
    assert store.upserts == 1


@pytest.mark.asyncio
async def test_metadata_ensure_keeps_custom_names_already_in_storage() -> None:
    store = MemoryLocationStore()
    await store.upsert_vehicle("v1", name="Custom")
    cache = MetadataCache(store)

    display = await cache.ensure("v1")
    assert display.name == "Custom"


@pytest.mark.asyncio
async def test_metadata_update_writes_through() -> None:
    store = MemoryLocationStore()
    cache = MetadataCache(store)
    await cache.ensure("v1")

    meta = await cache.update("v1", color="#123456")

    assert meta.color == "#123456"
    assert cache.get("v1").color == "#123456"
    stored = await store.get_vehicle("v1")
    assert stored is not None and stored.color == "#123456"


@pytest.mark.asyncio
async def test_latest_cache_serves_within_ttl_and_reloads_after() -> None:
    clock = _Clock()
    cache = LatestLocationsCache(ttl=10, clock=clock)
    loads: list[int] = []

    async def loader() -> list[LocationView]:
        loads.append(1)
        return [_view(f"v{len(loads)}")]

    assert [v.id for v in await cache.get(loader)] == ["v1"]
    clock.now = 9.9
    assert [v.id for v in await cache.get(loader)] == ["v1"]
    clock.now = 10.0
    assert [v.id for v in await cache.get(loader)] == ["v2"]
    assert len(loads) == 2


@pytest.mark.asyncio
async def test_latest_cache_invalidate_forces_reload() -> None:
    cache = LatestLocationsCache(ttl=60, clock=_Clock())
    calls = 0

    async def loader() -> list[LocationView]:
        nonlocal calls
        calls += 1
        return []

    await cache.get(loader)
    assert cache.is_fresh
    cache.invalidate()
    assert not cache.is_fresh
    await cache.get(loader)
    assert calls == 2


@pytest.mark.asyncio
async def test_latest_cache_does_not_keep_a_load_that_raced_an_invalidate() -> None:
    cache = LatestLocationsCache(ttl=60, clock=_Clock())
    started = asyncio.Event()
    release = asyncio.Event()
    calls = 0

    async def loader() -> list[LocationView]:
        nonlocal calls
        calls += 1
        if calls == 1:
            started.set()
            await release.wait()
            return []
        return [_view("v1")]

    pending = asyncio.create_task(cache.get(loader))
    await started.wait()
    cache.invalidate()
    release.set()

    assert await pending == []
    assert not cache.is_fresh
    assert [v.id for v in await cache.get(loader)] == ["v1"]
    assert calls == 2
    assert cache.is_fresh


def test_poll_log_is_most_recent_first_and_bounded() -> None:
    log = PollResultLog(capacity=3)
    for count in range(5):
        log.record(PollOutcome(telemetry_class=TelemetryClass.VEHICLES, success=True, count=count))

    assert len(log) == 3
    assert log.capacity == 3
    assert [entry.count for entry in log.entries()] == [4, 3, 2]

    log.clear()
    assert log.entries() == []
