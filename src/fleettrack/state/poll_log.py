"""Bounded in-memory log of poll cycle outcomes."""

from __future__ import annotations

from collections import deque

from fleettrack.models.poll import PollOutcome


class PollResultLog:
    """Most-recent-first ring buffer; the oldest entry drops when full."""

    def __init__(self, capacity: int = 50) -> None:
        self._entries: deque[PollOutcome] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._entries.maxlen or 0

    def record(self, outcome: PollOutcome) -> None:
        self._entries.appendleft(outcome)

    def entries(self) -> list[PollOutcome]:
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
