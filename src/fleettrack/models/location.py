"""Location reading models."""

from __future__ import annotations

import math

from pydantic import Field, field_validator, model_validator

from fleettrack.models._base import TrackerBaseModel, UtcTimestamp


class LocationCandidate(TrackerBaseModel):
    """A canonical reading produced by the normalizer, not yet persisted.

    Parameters
    ----------
    vehicle_id : str
        Tracked entity identifier (assets carry the ``asset-`` prefix).
    latitude : float
        Latitude in degrees.
    longitude : float
        Longitude in degrees.
    speed : float
        Ground speed in mph, never negative.
    heading : float
        Heading in degrees.
    status : str
        Movement classification (``moving``, ``stopped`` or an upstream state).
    timestamp : datetime
        When the position was observed upstream (UTC).
    """

    vehicle_id: str
    latitude: float
    longitude: float
    speed: float = Field(default=0.0, ge=0.0)
    heading: float = 0.0
    status: str
    timestamp: UtcTimestamp

    @field_validator("vehicle_id")
    @classmethod
    def _strip_vehicle_id(cls, value: str) -> str:
        vehicle_id = value.strip()
        if not vehicle_id:
            raise ValueError("vehicle_id must be non-empty")
        return vehicle_id

    @field_validator("latitude", "longitude", "speed", "heading")
    @classmethod
    def _require_finite(cls, value: float) -> float:
        if not math.isfinite(value):
            raise ValueError("value must be finite")
        return value

    @model_validator(mode="after")
    def _reject_null_island(self) -> LocationCandidate:
        if self.latitude == 0 and self.longitude == 0:
            raise ValueError("(0, 0) is treated as no GPS fix")
        return self


class LocationReading(LocationCandidate):
    """A persisted location reading.

    ``received_at`` is assigned by storage and increases with insertion
    order, independent of the upstream ``timestamp``.
    """

    id: int
    received_at: UtcTimestamp


class LocationView(TrackerBaseModel):
    """A reading joined with its vehicle's display metadata.

    This is the shape served to dashboard clients and pushed over the
    live-update channel.
    """

    id: str
    name: str
    color: str
    lat: float
    lon: float
    speed: float
    heading: float
    status: str
    timestamp: UtcTimestamp

    @classmethod
    def from_reading(cls, reading: LocationCandidate, *, name: str, color: str) -> LocationView:
        return cls(
            id=reading.vehicle_id,
            name=name,
            color=color,
            lat=reading.latitude,
            lon=reading.longitude,
            speed=reading.speed,
            heading=reading.heading,
            status=reading.status,
            timestamp=reading.timestamp,
        )

    def to_payload(self) -> dict[str, object]:
        """Render the client-facing JSON shape."""
        return {
            "id": self.id,
            "name": self.name,
            "color": self.color,
            "location": {"lat": self.lat, "lon": self.lon},
            "speed": self.speed,
            "heading": self.heading,
            "status": self.status,
            "timestamp": self.timestamp.isoformat().replace("+00:00", "Z"),
        }


def reading_payload(reading: LocationReading) -> dict[str, object]:
    """Client-facing JSON shape for a single reading without display metadata."""
    return {
        "id": reading.vehicle_id,
        "location": {"lat": reading.latitude, "lon": reading.longitude},
        "speed": reading.speed,
        "heading": reading.heading,
        "status": reading.status,
        "timestamp": reading.timestamp.isoformat().replace("+00:00", "Z"),
    }
