"""Vehicle display metadata cache.

Avoids a storage round-trip per ingested reading. Every write goes to
storage first and then to the cache in the same call, so the two never
diverge.
"""

from __future__ import annotations

import logging

from fleettrack._constants import DEFAULT_VEHICLE_COLOR
from fleettrack.models.vehicle import VehicleDisplay, VehicleMeta
from fleettrack.storage import LocationStore

_logger = logging.getLogger(__name__)


class MetadataCache:
    """In-memory ``vehicle_id -> VehicleDisplay`` map, seeded from storage.

    A miss is never an error: :meth:`get` falls back to the id as name and
    ``default_color``. Entries are only removed when a vehicle is deleted.
    """

    def __init__(self, storage: LocationStore, *, default_color: str = DEFAULT_VEHICLE_COLOR) -> None:
        self._storage = storage
        self._default_color = default_color
        self._entries: dict[str, VehicleDisplay] = {}
        self._loaded = False

    @property
    def loaded(self) -> bool:
        return self._loaded

    async def load(self) -> int:
        """Populate the cache with a full scan of stored metadata."""
        vehicles = await self._storage.get_vehicles()
        for meta in vehicles:
            self._store(meta)
        self._loaded = True
        _logger.info("Vehicle metadata cache initialized with %d vehicles", len(vehicles))
        return len(vehicles)

    def get(self, vehicle_id: str) -> VehicleDisplay:
        entry = self._entries.get(vehicle_id)
        if entry is None:
            return VehicleDisplay(name=vehicle_id, color=self._default_color)
        return entry

    def contains(self, vehicle_id: str) -> bool:
        return vehicle_id in self._entries

    async def ensure(self, vehicle_id: str, *, default_color: str | None = None) -> VehicleDisplay:
        """Create metadata for a first-seen vehicle.

        Known ids are answered from the cache without touching storage.
        Unknown ids are upserted without overrides, which keeps any custom
        name/color storage already holds.
        """
        entry = self._entries.get(vehicle_id)
        if entry is not None:
            return entry
        meta = await self._storage.upsert_vehicle(
            vehicle_id,
            default_color=default_color or self._default_color,
        )
        _logger.info("Registered new vehicle %s", vehicle_id)
        return self._store(meta)

    async def update(self, vehicle_id: str, *, name: str | None = None, color: str | None = None) -> VehicleMeta:
        """Apply an administrative name/color edit."""
        meta = await self._storage.upsert_vehicle(vehicle_id, name=name, color=color)
        self._store(meta)
        _logger.info("Updated vehicle metadata cache for %s", vehicle_id)
        return meta

    def forget(self, vehicle_id: str) -> None:
        self._entries.pop(vehicle_id, None)

    def _store(self, meta: VehicleMeta) -> VehicleDisplay:
        display = VehicleDisplay(name=meta.name or meta.vehicle_id, color=meta.color or self._default_color)
        self._entries[meta.vehicle_id] = display
        return display

    def __len__(self) -> int:
        return len(self._entries)
