"""Live-update events pushed to connected map clients."""

from __future__ import annotations

import json
from typing import Any, Literal

from fleettrack.models._base import TrackerBaseModel
from fleettrack.models.location import LocationView


class LocationUpdateEvent(TrackerBaseModel):
    """A single accepted reading, tagged for the live-update channel."""

    type: Literal["location_update"] = "location_update"
    data: LocationView

    def to_message(self) -> dict[str, Any]:
        return {"type": self.type, "data": self.data.to_payload()}

    def to_json(self) -> str:
        return json.dumps(self.to_message(), separators=(",", ":"))
