"""Poll cycle outcome models."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import Field

from fleettrack.models._base import TrackerBaseModel


class TelemetryClass(StrEnum):
    VEHICLES = "vehicles"
    ASSETS = "assets"


class PollState(StrEnum):
    IDLE = "idle"
    RUNNING = "running"


class PollOutcome(TrackerBaseModel):
    """Operational record of one ingestion attempt for one telemetry class.

    Held only in memory; an operability aid, not an audit log.
    """

    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    telemetry_class: TelemetryClass
    success: bool
    count: int = 0
    error: str | None = None
    raw: dict[str, Any] | None = None


class CycleReport(TrackerBaseModel):
    """Acknowledgement returned to whoever triggered a poll cycle.

    ``skipped`` is set when the trigger was a no-op, either because a cycle
    was already running or because polling is disabled; ``reason`` says which.
    """

    skipped: bool = False
    reason: str | None = None
    outcomes: list[PollOutcome] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.skipped and all(outcome.success for outcome in self.outcomes)
