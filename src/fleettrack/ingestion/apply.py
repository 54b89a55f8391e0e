"""Ingestion application helpers.

This module centralizes what happens to a reading once the gate accepted it,
shared by the polling pipeline and the legacy webhook:

- make sure display metadata exists for the vehicle (via the metadata cache)
- append the reading to storage
- invalidate the latest-locations cache
- broadcast the reading with its display name/color

The storage write always happens before the broadcast for the same reading.
"""

from __future__ import annotations

import logging

from fleettrack.broadcast import Broadcaster
from fleettrack.exceptions import StorageError
from fleettrack.models.events import LocationUpdateEvent
from fleettrack.models.location import LocationCandidate, LocationReading, LocationView
from fleettrack.state.latest import LatestLocationsCache
from fleettrack.state.metadata import MetadataCache
from fleettrack.storage import LocationStore

_logger = logging.getLogger(__name__)


class LocationIngestor:
    """Persist and fan out accepted readings."""

    def __init__(
        self,
        *,
        storage: LocationStore,
        metadata: MetadataCache,
        latest: LatestLocationsCache,
        broadcaster: Broadcaster,
    ) -> None:
        self._storage = storage
        self._metadata = metadata
        self._latest = latest
        self._broadcaster = broadcaster

    async def ingest(self, candidate: LocationCandidate, *, default_color: str | None = None) -> LocationReading:
        """Persist *candidate* and broadcast it.

        Raises
        ------
        StorageError
            If metadata creation or the reading insert fails. Nothing is
            broadcast in that case.
        """
        vehicle_id = candidate.vehicle_id
        try:
            display = await self._metadata.ensure(vehicle_id, default_color=default_color)
            reading = await self._storage.insert_location(candidate)
        except StorageError:
            raise
        except Exception as exc:
            raise StorageError(f"failed to store reading for {vehicle_id}: {exc}") from exc

        self._latest.invalidate()

        event = LocationUpdateEvent(
            data=LocationView.from_reading(reading, name=display.name, color=display.color),
        )
        await self._broadcaster.publish(event)
        _logger.debug("Stored reading %d for %s", reading.id, vehicle_id)
        return reading
