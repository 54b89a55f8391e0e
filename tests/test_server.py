from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Mapping
from dataclasses import dataclass, field
from typing import Any

import pytest
import pytest_asyncio
from aiohttp import test_utils

from fleettrack import FleetTracker, TrackerConfig
from fleettrack.server import create_app

pytestmark = pytest.mark.e2e


@dataclass
class FakeMotiveBackend:
    vehicles: list[dict[str, Any]] = field(default_factory=list)

    async def get_json(self, endpoint: str, params: Mapping[str, Any]) -> dict[str, Any]:
        if endpoint == "/v3/vehicle_locations":
            return {"vehicles": [{"vehicle": v} for v in self.vehicles]}
        return {}


@pytest_asyncio.fixture
async def tracker() -> FleetTracker:
    backend = FakeMotiveBackend(
        vehicles=[
            {
                "id": 1,
                "current_location": {
                    "lat": 33.1,
                    "lon": -112.1,
                    "located_at": "2024-05-01T12:00:00Z",
                    "speed": 10,
                },
            }
        ]
    )
    return FleetTracker(TrackerConfig(api_key="test-key"), transport=backend)


@pytest_asyncio.fixture
async def client(tracker: FleetTracker) -> AsyncIterator[test_utils.TestClient]:
    app = create_app(tracker, start_polling=False)
    async with test_utils.TestClient(test_utils.TestServer(app)) as test_client:
        yield test_client


async def _wait_for_subscribers(tracker: FleetTracker, count: int) -> None:
    for _ in range(100):
        if len(tracker.subscribers) >= count:
            return
        await asyncio.sleep(0.01)
    raise AssertionError("subscriber never registered")


@pytest.mark.asyncio
async def test_poll_then_read_latest_and_history(client: test_utils.TestClient) -> None:
    resp = await client.post("/api/poll")
    assert resp.status == 200
    report = await resp.json()
    assert report["success"] is True
    assert [o["telemetry_class"] for o in report["outcomes"]] == ["vehicles", "assets"]

    latest = await (await client.get("/api/vehicles")).json()
    assert latest == [
        {
            "id": "1",
            "name": "1",
            "color": "#3b82f6",
            "location": {"lat": 33.1, "lon": -112.1},
            "speed": 10.0,
            "heading": 0.0,
            "status": "moving",
            "timestamp": "2024-05-01T12:00:00Z",
        }
    ]

    location = await client.get("/api/vehicles/1/location")
    assert location.status == 200
    assert (await location.json())["location"] == {"lat": 33.1, "lon": -112.1}

    history = await (await client.get("/api/vehicles/1/history?limit=5")).json()
    assert len(history) == 1

    missing = await client.get("/api/vehicles/nope/location")
    assert missing.status == 404


@pytest.mark.asyncio
async def test_update_and_delete_vehicle(client: test_utils.TestClient) -> None:
    await client.post("/api/poll")

    resp = await client.post("/api/vehicles/1", json={"name": "Dispatch 1", "color": "#112233"})
    assert resp.status == 200
    assert (await resp.json())["name"] == "Dispatch 1"

    latest = await (await client.get("/api/vehicles")).json()
    assert latest[0]["name"] == "Dispatch 1"

    bad = await client.post("/api/vehicles/1", json={"color": "blue"})
    assert bad.status == 400

    deleted = await client.delete("/api/vehicles/1")
    assert (await deleted.json())["removed"] is True
    assert await (await client.get("/api/vehicles")).json() == []


@pytest.mark.asyncio
async def test_websocket_receives_webhook_updates(client: test_utils.TestClient, tracker: FleetTracker) -> None:
    ws = await client.ws_connect("/ws")
    await _wait_for_subscribers(tracker, 1)

    resp = await client.post(
        "/api/webhooks/motive",
        json={"action": "vehicle_location_received", "vehicle_id": "77", "lat": 36.0, "lon": -115.0},
    )
    assert resp.status == 200

    message = await ws.receive_json(timeout=2)
    assert message["type"] == "location_update"
    assert message["data"]["id"] == "77"
    await ws.close()


@pytest.mark.asyncio
async def test_webhook_liveness_and_verification(client: test_utils.TestClient) -> None:
    liveness = await client.get("/api/webhooks/motive/test")
    assert (await liveness.json())["status"] == "ok"

    ping = await client.post("/api/webhooks/motive", json=["vehicle_location_updated"])
    assert ping.status == 200
    assert (await ping.json())["message"] == "Webhook endpoint verified"


@pytest.mark.asyncio
async def test_poll_results_can_be_listed_and_cleared(client: test_utils.TestClient) -> None:
    await client.post("/api/poll")

    results = await (await client.get("/api/poll-results")).json()
    assert results["count"] == 2

    await client.delete("/api/poll-results")
    assert (await (await client.get("/api/poll-results")).json())["count"] == 0


@pytest.mark.asyncio
async def test_locations_range_query(client: test_utils.TestClient) -> None:
    await client.post("/api/poll")

    rows = await (
        await client.get("/api/locations", params={"startDate": "2024-05-01T00:00:00Z", "vehicleId": "1"})
    ).json()
    assert len(rows) == 1

    bad = await client.get("/api/locations", params={"startDate": "whenever"})
    assert bad.status == 400

    huge = await client.get("/api/locations", params={"startDate": "1" + "0" * 400})
    assert huge.status == 400

    offset = await client.get("/api/locations", params={"startDate": "2024-05-01T07:00:00-05:00"})
    assert len(await offset.json()) == 1

    inverted = await client.get(
        "/api/locations",
        params={"startDate": "2024-05-02T00:00:00Z", "endDate": "2024-05-01T00:00:00Z"},
    )
    assert inverted.status == 400
