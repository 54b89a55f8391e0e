"""Vehicle display metadata models."""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import ConfigDict, Field, field_validator

from fleettrack.models._base import TrackerBaseModel, UtcTimestamp


class VehicleDisplay(TrackerBaseModel):
    """Name and color used to render a vehicle on the map."""

    name: str
    color: str


class VehicleMeta(TrackerBaseModel):
    """Display identity for a tracked entity.

    Parameters
    ----------
    vehicle_id : str
        Primary key, shared between vehicles and prefixed assets.
    name : str
        Human label. Defaults to ``vehicle_id`` when created automatically.
    color : str
        Display color (CSS hex string).
    created_at : datetime
        When the record was first created.
    """

    vehicle_id: str
    name: str
    color: str
    created_at: UtcTimestamp = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("vehicle_id")
    @classmethod
    def _strip_vehicle_id(cls, value: str) -> str:
        vehicle_id = value.strip()
        if not vehicle_id:
            raise ValueError("vehicle_id must be non-empty")
        return vehicle_id


class VehicleUpdate(TrackerBaseModel):
    """Administrative edit of a vehicle's display metadata.

    Omitted (or empty) fields keep their stored value.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", str_strip_whitespace=True)

    name: str | None = Field(default=None, max_length=200)
    color: str | None = Field(default=None, pattern=r"^#(?:[0-9a-fA-F]{3}){1,2}$")

    @field_validator("name", "color", mode="before")
    @classmethod
    def _empty_to_none(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value
