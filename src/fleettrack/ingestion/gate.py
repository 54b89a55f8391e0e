"""Per-vehicle throttle and spatial dedup gate.

Decides whether a canonical reading proceeds to persistence. State lives in
memory only and resets on restart; the first reading after a restart always
passes. This bounds write volume, it is not a correctness guarantee.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum

_logger = logging.getLogger(__name__)


class GateDecision(StrEnum):
    ACCEPTED = "accepted"
    THROTTLED = "throttled"
    UNCHANGED = "unchanged"

    @property
    def accepted(self) -> bool:
        return self is GateDecision.ACCEPTED


@dataclass(slots=True)
class _GateEntry:
    last_accepted_at: float
    last_lat: float
    last_lon: float


class ThrottleGate:
    """Time throttle followed by a minimum-movement check, per vehicle.

    Parameters
    ----------
    min_interval
        Seconds that must pass after an accepted reading before the same
        vehicle can be accepted again, regardless of movement.
    min_coordinate_delta
        Degrees of latitude or longitude a reading must move from the last
        accepted position to count as a change.
    clock
        Monotonic clock in seconds.
    """

    def __init__(
        self,
        *,
        min_interval: float = 30.0,
        min_coordinate_delta: float = 0.0001,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._min_interval = min_interval
        self._min_delta = min_coordinate_delta
        self._clock = clock
        self._entries: dict[str, _GateEntry] = {}

    def evaluate(self, vehicle_id: str, latitude: float, longitude: float) -> GateDecision:
        """Decide on a reading and record it when accepted."""
        now = self._clock()
        entry = self._entries.get(vehicle_id)

        if entry is not None:
            if now - entry.last_accepted_at < self._min_interval:
                return GateDecision.THROTTLED
            if abs(latitude - entry.last_lat) < self._min_delta and abs(longitude - entry.last_lon) < self._min_delta:
                return GateDecision.UNCHANGED

        self._entries[vehicle_id] = _GateEntry(last_accepted_at=now, last_lat=latitude, last_lon=longitude)
        return GateDecision.ACCEPTED

    def forget(self, vehicle_id: str) -> None:
        if self._entries.pop(vehicle_id, None) is not None:
            _logger.debug("Dropped gate state for %s", vehicle_id)

    def __len__(self) -> int:
        return len(self._entries)
