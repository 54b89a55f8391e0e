"""Typed models for fleettrack readings, metadata and operational records."""

from fleettrack.models._base import TrackerBaseModel, UtcTimestamp, parse_timestamp
from fleettrack.models.events import LocationUpdateEvent
from fleettrack.models.location import LocationCandidate, LocationReading, LocationView, reading_payload
from fleettrack.models.poll import CycleReport, PollOutcome, PollState, TelemetryClass
from fleettrack.models.vehicle import VehicleDisplay, VehicleMeta, VehicleUpdate

__all__ = [
    "CycleReport",
    "LocationCandidate",
    "LocationReading",
    "LocationUpdateEvent",
    "LocationView",
    "PollOutcome",
    "PollState",
    "TelemetryClass",
    "TrackerBaseModel",
    "UtcTimestamp",
    "VehicleDisplay",
    "VehicleMeta",
    "VehicleUpdate",
    "parse_timestamp",
    "reading_payload",
]
