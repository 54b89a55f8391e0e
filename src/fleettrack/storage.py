"""Storage collaborator interface and an in-process implementation.

The tracker only talks to storage through :class:`LocationStore`, so a
database-backed implementation can be dropped in without touching the
ingestion path. Implementations raise :class:`~fleettrack.exceptions.StorageError`
on failure.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Protocol

from fleettrack._constants import DEFAULT_VEHICLE_COLOR
from fleettrack.models.location import LocationCandidate, LocationReading
from fleettrack.models.vehicle import VehicleMeta

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class LocationStore(Protocol):
    """Structural storage interface used by the tracker.

    Having a protocol here makes it easy to pass test doubles while keeping
    the in-process implementation (:class:`MemoryLocationStore`) concrete.
    """

    async def insert_location(self, candidate: LocationCandidate) -> LocationReading: ...

    async def get_latest_location(self, vehicle_id: str) -> LocationReading | None: ...

    async def get_latest_locations(self) -> list[LocationReading]: ...

    async def get_location_history(self, vehicle_id: str, limit: int = 100) -> list[LocationReading]: ...

    async def get_locations(
        self,
        *,
        start: datetime | None = None,
        end: datetime | None = None,
        vehicle_id: str | None = None,
    ) -> list[LocationReading]: ...

    async def upsert_vehicle(
        self,
        vehicle_id: str,
        *,
        name: str | None = None,
        color: str | None = None,
        default_color: str = DEFAULT_VEHICLE_COLOR,
    ) -> VehicleMeta: ...

    async def get_vehicle(self, vehicle_id: str) -> VehicleMeta | None: ...

    async def get_vehicles(self) -> list[VehicleMeta]: ...

    async def delete_vehicle(self, vehicle_id: str) -> bool: ...


def _newest_first(reading: LocationReading) -> tuple[datetime, int]:
    return (reading.timestamp, reading.id)


class MemoryLocationStore:
    """Append-only in-memory store.

    Readings are never mutated. ``received_at`` is strictly increasing with
    insertion order even if the wall clock stalls or steps backwards.
    """

    def __init__(self, *, clock: Callable[[], datetime] = _utcnow) -> None:
        self._clock = clock
        self._readings: list[LocationReading] = []
        self._vehicles: dict[str, VehicleMeta] = {}
        self._next_id = 1
        self._last_received_at: datetime | None = None

    def _received_at(self) -> datetime:
        now = self._clock()
        if self._last_received_at is not None and now <= self._last_received_at:
            now = self._last_received_at + timedelta(microseconds=1)
        self._last_received_at = now
        return now

    async def insert_location(self, candidate: LocationCandidate) -> LocationReading:
        reading = LocationReading(
            **candidate.model_dump(),
            id=self._next_id,
            received_at=self._received_at(),
        )
        self._next_id += 1
        self._readings.append(reading)
        return reading

    async def get_latest_location(self, vehicle_id: str) -> LocationReading | None:
        history = [r for r in self._readings if r.vehicle_id == vehicle_id]
        if not history:
            return None
        return max(history, key=_newest_first)

    async def get_latest_locations(self) -> list[LocationReading]:
        latest: dict[str, LocationReading] = {}
        for reading in self._readings:
            current = latest.get(reading.vehicle_id)
            if current is None or _newest_first(reading) > _newest_first(current):
                latest[reading.vehicle_id] = reading
        return [latest[vehicle_id] for vehicle_id in sorted(latest)]

    async def get_location_history(self, vehicle_id: str, limit: int = 100) -> list[LocationReading]:
        history = [r for r in self._readings if r.vehicle_id == vehicle_id]
        history.sort(key=_newest_first, reverse=True)
        return history[: max(limit, 0)]

    async def get_locations(
        self,
        *,
        start: datetime | None = None,
        end: datetime | None = None,
        vehicle_id: str | None = None,
    ) -> list[LocationReading]:
        selected = [
            r
            for r in self._readings
            if (start is None or r.timestamp >= start)
            and (end is None or r.timestamp <= end)
            and (vehicle_id is None or r.vehicle_id == vehicle_id)
        ]
        selected.sort(key=_newest_first, reverse=True)
        return selected

    async def upsert_vehicle(
        self,
        vehicle_id: str,
        *,
        name: str | None = None,
        color: str | None = None,
        default_color: str = DEFAULT_VEHICLE_COLOR,
    ) -> VehicleMeta:
        """Create or update vehicle metadata.

        Only explicitly supplied ``name``/``color`` overwrite an existing
        record; calling without overrides is idempotent.
        """
        existing = self._vehicles.get(vehicle_id)
        if existing is None:
            meta = VehicleMeta(
                vehicle_id=vehicle_id,
                name=name or vehicle_id,
                color=color or default_color,
                created_at=self._clock(),
            )
        else:
            updates: dict[str, str] = {}
            if name:
                updates["name"] = name
            if color:
                updates["color"] = color
            meta = existing.model_copy(update=updates) if updates else existing
        self._vehicles[meta.vehicle_id] = meta
        return meta

    async def get_vehicle(self, vehicle_id: str) -> VehicleMeta | None:
        return self._vehicles.get(vehicle_id)

    async def get_vehicles(self) -> list[VehicleMeta]:
        return list(self._vehicles.values())

    async def delete_vehicle(self, vehicle_id: str) -> bool:
        """Delete a vehicle's metadata and its whole location history."""
        before = len(self._readings)
        self._readings = [r for r in self._readings if r.vehicle_id != vehicle_id]
        removed_meta = self._vehicles.pop(vehicle_id, None) is not None
        removed_rows = before - len(self._readings)
        if removed_meta or removed_rows:
            _logger.debug("Deleted vehicle %s with %d readings", vehicle_id, removed_rows)
        return removed_meta or removed_rows > 0
