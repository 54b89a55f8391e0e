"""High-level async tracker owning the ingestion pipeline and its state."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from typing import Any

import aiohttp

from fleettrack._constants import DEFAULT_VEHICLE_COLOR
from fleettrack._transport import MotiveTransport, Transport
from fleettrack.broadcast import Broadcaster, SubscriberSet
from fleettrack.config import TrackerConfig
from fleettrack.exceptions import FleetTrackError
from fleettrack.ingestion.apply import LocationIngestor
from fleettrack.ingestion.gate import ThrottleGate
from fleettrack.ingestion.pipeline import (
    DEFAULT_TELEMETRY_CLASSES,
    IngestionPipeline,
    PollScheduler,
    TelemetryClassSpec,
)
from fleettrack.ingestion.webhook import WebhookProcessor, WebhookResult
from fleettrack.models.location import LocationReading, LocationView
from fleettrack.models.poll import CycleReport, PollOutcome
from fleettrack.models.vehicle import VehicleMeta
from fleettrack.state.latest import LatestLocationsCache
from fleettrack.state.metadata import MetadataCache
from fleettrack.state.poll_log import PollResultLog
from fleettrack.storage import LocationStore, MemoryLocationStore

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class FleetTracker:
    """Async facade over ingestion, caches and admin operations.

    Constructed once per process. Every cache and the gate state are owned
    here and handed by reference to the components that need them.

    Usage::

        async with FleetTracker(TrackerConfig.from_env()) as tracker:
            tracker.start_polling()
            vehicles = await tracker.get_latest_locations()
    """

    def __init__(
        self,
        config: TrackerConfig,
        *,
        storage: LocationStore | None = None,
        session: aiohttp.ClientSession | None = None,
        transport: Transport | None = None,
        classes: tuple[TelemetryClassSpec, ...] = DEFAULT_TELEMETRY_CLASSES,
        monotonic: Callable[[], float] = time.monotonic,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._config = config
        self._storage: LocationStore = storage if storage is not None else MemoryLocationStore()
        self._external_session = session is not None
        self._http_session = session
        self._transport = transport
        self._classes = classes
        self._clock = clock

        self._subscribers = SubscriberSet()
        self._broadcaster = Broadcaster(self._subscribers)
        self._metadata = MetadataCache(self._storage, default_color=DEFAULT_VEHICLE_COLOR)
        self._latest = LatestLocationsCache(ttl=config.latest_cache_ttl, clock=monotonic)
        self._poll_log = PollResultLog(config.poll_log_size)
        self._gate = ThrottleGate(
            min_interval=config.throttle_interval,
            min_coordinate_delta=config.min_coordinate_delta,
            clock=monotonic,
        )
        self._ingestor = LocationIngestor(
            storage=self._storage,
            metadata=self._metadata,
            latest=self._latest,
            broadcaster=self._broadcaster,
        )
        self._webhook = WebhookProcessor(config=config, gate=self._gate, ingestor=self._ingestor)
        self._pipeline: IngestionPipeline | None = None
        self._scheduler: PollScheduler | None = None

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> FleetTracker:
        if self._transport is None and self._config.polling_enabled:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            self._transport = MotiveTransport(self._config, self._http_session)
        self._pipeline = IngestionPipeline(
            config=self._config,
            transport=self._transport,
            gate=self._gate,
            ingestor=self._ingestor,
            poll_log=self._poll_log,
            classes=self._classes,
            clock=self._clock,
        )
        self._scheduler = PollScheduler(self._pipeline, interval=self._config.poll_interval)
        if not self._metadata.loaded:
            await self._metadata.load()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        if self._scheduler is not None:
            await self._scheduler.stop()
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
        self._scheduler = None
        self._pipeline = None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_pipeline(self) -> IngestionPipeline:
        if self._pipeline is None:
            raise FleetTrackError("Tracker not initialized. Use 'async with FleetTracker(...) as tracker:'")
        return self._pipeline

    def _require_scheduler(self) -> PollScheduler:
        if self._scheduler is None:
            raise FleetTrackError("Tracker not initialized. Use 'async with FleetTracker(...) as tracker:'")
        return self._scheduler

    async def _load_latest(self) -> list[LocationView]:
        readings = await self._storage.get_latest_locations()
        views: list[LocationView] = []
        for reading in readings:
            display = self._metadata.get(reading.vehicle_id)
            views.append(LocationView.from_reading(reading, name=display.name, color=display.color))
        return views

    # ------------------------------------------------------------------
    # Shared state
    # ------------------------------------------------------------------

    @property
    def config(self) -> TrackerConfig:
        return self._config

    @property
    def subscribers(self) -> SubscriberSet:
        return self._subscribers

    @property
    def polling(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    def start_polling(self) -> bool:
        """Arm the poll timer; a no-op when the API key is missing."""
        return self._require_scheduler().start()

    async def stop_polling(self) -> None:
        await self._require_scheduler().stop()

    async def poll_now(self) -> CycleReport:
        """Run a poll cycle now and wait for it to finish."""
        return await self._require_pipeline().run_cycle()

    def poll_results(self) -> list[PollOutcome]:
        return self._poll_log.entries()

    def clear_poll_results(self) -> None:
        self._poll_log.clear()

    # ------------------------------------------------------------------
    # Webhook
    # ------------------------------------------------------------------

    async def handle_webhook(self, body: bytes, headers: Mapping[str, str]) -> WebhookResult:
        return await self._webhook.handle(body, headers)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_latest_locations(self) -> list[LocationView]:
        """Current position of every vehicle, served from the TTL cache."""
        return await self._latest.get(self._load_latest)

    async def get_vehicle_location(self, vehicle_id: str) -> LocationReading | None:
        return await self._storage.get_latest_location(vehicle_id)

    async def get_vehicle_history(self, vehicle_id: str, limit: int = 100) -> list[LocationReading]:
        return await self._storage.get_location_history(vehicle_id, limit)

    async def get_locations(
        self,
        *,
        start: datetime | None = None,
        end: datetime | None = None,
        vehicle_id: str | None = None,
    ) -> list[LocationReading]:
        if start is not None and end is not None and start > end:
            raise ValueError("start must be before end")
        return await self._storage.get_locations(start=start, end=end, vehicle_id=vehicle_id)

    async def list_vehicles(self) -> list[VehicleMeta]:
        return await self._storage.get_vehicles()

    # ------------------------------------------------------------------
    # Admin writes
    # ------------------------------------------------------------------

    async def update_vehicle(self, vehicle_id: str, *, name: str | None = None, color: str | None = None) -> VehicleMeta:
        """Edit a vehicle's display name/color; visible to the next latest-locations read."""
        meta = await self._metadata.update(vehicle_id, name=name, color=color)
        self._latest.invalidate()
        return meta

    async def delete_vehicle(self, vehicle_id: str) -> bool:
        """Remove a vehicle, its history and all in-memory state for it."""
        removed = await self._storage.delete_vehicle(vehicle_id)
        self._metadata.forget(vehicle_id)
        self._gate.forget(vehicle_id)
        self._latest.invalidate()
        _logger.info("Deleted vehicle %s", vehicle_id)
        return removed
