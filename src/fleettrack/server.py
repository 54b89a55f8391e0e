"""aiohttp web application exposing the tracker.

Routes
------
``GET /ws``                               live location updates
``POST /api/webhooks/motive``             legacy push webhook
``GET /api/webhooks/motive/test``         webhook reachability check
``GET /api/vehicles``                     latest position of every vehicle
``GET /api/vehicles/metadata``            all vehicle metadata
``GET /api/vehicles/{vehicle_id}/location``
``GET /api/vehicles/{vehicle_id}/history``
``POST /api/vehicles/{vehicle_id}``       edit name/color
``DELETE /api/vehicles/{vehicle_id}``     delete vehicle and history
``GET /api/locations``                    filtered history (start, end, vehicle_id)
``POST /api/poll``                        trigger a poll cycle now
``GET /api/poll-results``                 recent poll outcomes
``DELETE /api/poll-results``              clear poll outcomes
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from datetime import UTC, datetime

from aiohttp import WSCloseCode, WSMsgType, web
from pydantic import ValidationError

from fleettrack.models._base import parse_timestamp
from fleettrack.models.location import reading_payload
from fleettrack.models.vehicle import VehicleUpdate
from fleettrack.tracker import FleetTracker

_logger = logging.getLogger(__name__)

TRACKER_KEY = web.AppKey("tracker", FleetTracker)
START_POLLING_KEY = web.AppKey("start_polling", bool)


def _tracker(request: web.Request) -> FleetTracker:
    return request.app[TRACKER_KEY]


def _iso_now() -> str:
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


async def handle_ws(request: web.Request) -> web.WebSocketResponse:
    tracker = _tracker(request)
    ws = web.WebSocketResponse(heartbeat=30.0)
    await ws.prepare(request)

    tracker.subscribers.add(ws)
    _logger.info("WebSocket client connected (%d total)", len(tracker.subscribers))
    try:
        async for msg in ws:
            if msg.type == WSMsgType.ERROR:
                _logger.warning("WebSocket error: %s", ws.exception())
    finally:
        tracker.subscribers.discard(ws)
        _logger.info("WebSocket client disconnected")
    return ws


async def handle_webhook(request: web.Request) -> web.Response:
    body = await request.read()
    result = await _tracker(request).handle_webhook(body, request.headers)
    return web.json_response(result.body, status=result.status)


async def handle_webhook_test(request: web.Request) -> web.Response:
    return web.json_response(
        {"status": "ok", "message": "Webhook endpoint is accessible", "timestamp": _iso_now()},
    )


async def handle_latest_locations(request: web.Request) -> web.Response:
    views = await _tracker(request).get_latest_locations()
    return web.json_response([view.to_payload() for view in views])


async def handle_vehicles_metadata(request: web.Request) -> web.Response:
    vehicles = await _tracker(request).list_vehicles()
    return web.json_response([meta.model_dump(mode="json") for meta in vehicles])


async def handle_vehicle_location(request: web.Request) -> web.Response:
    vehicle_id = request.match_info["vehicle_id"]
    reading = await _tracker(request).get_vehicle_location(vehicle_id)
    if reading is None:
        return web.json_response({"error": "Vehicle not found"}, status=404)
    return web.json_response(reading_payload(reading))


async def handle_vehicle_history(request: web.Request) -> web.Response:
    vehicle_id = request.match_info["vehicle_id"]
    try:
        limit = int(request.query.get("limit", "100"))
    except ValueError:
        limit = 100
    if limit <= 0:
        limit = 100
    history = await _tracker(request).get_vehicle_history(vehicle_id, limit)
    return web.json_response([reading_payload(reading) for reading in history])


async def handle_update_vehicle(request: web.Request) -> web.Response:
    vehicle_id = request.match_info["vehicle_id"]
    try:
        payload = await request.json()
    except ValueError:
        return web.json_response({"error": "Body is not valid JSON"}, status=400)
    if not isinstance(payload, dict):
        return web.json_response({"error": "Expected a JSON object"}, status=400)
    try:
        update = VehicleUpdate.model_validate(payload)
    except ValidationError as exc:
        return web.json_response({"error": str(exc)}, status=400)

    meta = await _tracker(request).update_vehicle(vehicle_id, name=update.name, color=update.color)
    return web.json_response(meta.model_dump(mode="json"))


async def handle_delete_vehicle(request: web.Request) -> web.Response:
    vehicle_id = request.match_info["vehicle_id"]
    removed = await _tracker(request).delete_vehicle(vehicle_id)
    return web.json_response({"success": True, "removed": removed})


async def handle_locations(request: web.Request) -> web.Response:
    try:
        start = parse_timestamp(request.query.get("startDate"))
        end = parse_timestamp(request.query.get("endDate"))
    except ValueError:
        return web.json_response({"error": "Invalid date format"}, status=400)
    vehicle_id = request.query.get("vehicleId") or None
    try:
        readings = await _tracker(request).get_locations(start=start, end=end, vehicle_id=vehicle_id)
    except ValueError as exc:
        return web.json_response({"error": str(exc)}, status=400)
    return web.json_response([reading.model_dump(mode="json") for reading in readings])


async def handle_poll_now(request: web.Request) -> web.Response:
    report = await _tracker(request).poll_now()
    return web.json_response(
        {
            "success": report.success,
            "skipped": report.skipped,
            "reason": report.reason,
            "outcomes": [outcome.model_dump(mode="json") for outcome in report.outcomes],
        }
    )


async def handle_poll_results(request: web.Request) -> web.Response:
    results = _tracker(request).poll_results()
    return web.json_response(
        {"count": len(results), "results": [outcome.model_dump(mode="json") for outcome in results]},
    )


async def handle_clear_poll_results(request: web.Request) -> web.Response:
    _tracker(request).clear_poll_results()
    return web.json_response({"success": True, "message": "Poll results cleared"})


async def _tracker_lifecycle(app: web.Application) -> AsyncIterator[None]:
    tracker = app[TRACKER_KEY]
    async with tracker:
        if app[START_POLLING_KEY]:
            tracker.start_polling()
        yield
        for subscriber in tracker.subscribers.snapshot():
            if isinstance(subscriber, web.WebSocketResponse):
                await subscriber.close(code=WSCloseCode.GOING_AWAY, message=b"Server shutdown")


def create_app(tracker: FleetTracker, *, start_polling: bool = True) -> web.Application:
    """Build the web application; the tracker is entered on startup and exited on cleanup."""
    app = web.Application()
    app[TRACKER_KEY] = tracker
    app[START_POLLING_KEY] = start_polling
    app.cleanup_ctx.append(_tracker_lifecycle)

    app.router.add_get("/ws", handle_ws)
    app.router.add_post("/api/webhooks/motive", handle_webhook)
    app.router.add_get("/api/webhooks/motive/test", handle_webhook_test)
    app.router.add_get("/api/vehicles", handle_latest_locations)
    app.router.add_get("/api/vehicles/metadata", handle_vehicles_metadata)
    app.router.add_get("/api/vehicles/{vehicle_id}/location", handle_vehicle_location)
    app.router.add_get("/api/vehicles/{vehicle_id}/history", handle_vehicle_history)
    app.router.add_post("/api/vehicles/{vehicle_id}", handle_update_vehicle)
    app.router.add_delete("/api/vehicles/{vehicle_id}", handle_delete_vehicle)
    app.router.add_get("/api/locations", handle_locations)
    app.router.add_post("/api/poll", handle_poll_now)
    app.router.add_get("/api/poll-results", handle_poll_results)
    app.router.add_delete("/api/poll-results", handle_clear_poll_results)
    return app
