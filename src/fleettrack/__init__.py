"""fleettrack - Fleet GPS telemetry ingestion with live map fan-out."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("fleettrack")
except PackageNotFoundError:
    __version__ = "0+local"
from fleettrack.broadcast import Broadcaster, Subscriber, SubscriberSet
from fleettrack.config import TrackerConfig
from fleettrack.exceptions import (
    ConfigError,
    EndpointNotAvailableError,
    FleetTrackError,
    InvalidReadingError,
    MalformedPayloadError,
    PayloadError,
    StorageError,
    TransportError,
    WebhookSignatureError,
)
from fleettrack.ingestion.gate import GateDecision, ThrottleGate
from fleettrack.ingestion.pipeline import IngestionPipeline, PollScheduler, TelemetryClassSpec
from fleettrack.ingestion.records import normalize_record
from fleettrack.models import (
    CycleReport,
    LocationCandidate,
    LocationReading,
    LocationUpdateEvent,
    LocationView,
    PollOutcome,
    PollState,
    TelemetryClass,
    VehicleDisplay,
    VehicleMeta,
    VehicleUpdate,
)
from fleettrack.storage import LocationStore, MemoryLocationStore
from fleettrack.tracker import FleetTracker

__all__ = [
    "__version__",
    "Broadcaster",
    "ConfigError",
    "CycleReport",
    "EndpointNotAvailableError",
    "FleetTrackError",
    "FleetTracker",
    "GateDecision",
    "IngestionPipeline",
    "InvalidReadingError",
    "LocationCandidate",
    "LocationReading",
    "LocationStore",
    "LocationUpdateEvent",
    "LocationView",
    "MalformedPayloadError",
    "MemoryLocationStore",
    "PayloadError",
    "PollOutcome",
    "PollScheduler",
    "PollState",
    "StorageError",
    "Subscriber",
    "SubscriberSet",
    "TelemetryClass",
    "TelemetryClassSpec",
    "ThrottleGate",
    "TrackerConfig",
    "TransportError",
    "VehicleDisplay",
    "VehicleMeta",
    "VehicleUpdate",
    "WebhookSignatureError",
    "normalize_record",
]
