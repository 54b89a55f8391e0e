"""Short-TTL cache for the "current position of every vehicle" query."""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable

from fleettrack.models.location import LocationView


class LatestLocationsCache:
    """Holds one full result set plus its capture time.

    Invalidation is all-or-nothing; there is no per-vehicle eviction. A load
    that was in flight when :meth:`invalidate` ran is returned to its caller
    but not cached, since it may predate the write that invalidated it.
    """

    def __init__(self, *, ttl: float = 10.0, clock: Callable[[], float] = time.monotonic) -> None:
        self._ttl = ttl
        self._clock = clock
        self._data: list[LocationView] | None = None
        self._captured_at: float = 0.0
        self._generation = 0

    @property
    def is_fresh(self) -> bool:
        return self._data is not None and (self._clock() - self._captured_at) < self._ttl

    async def get(self, loader: Callable[[], Awaitable[list[LocationView]]]) -> list[LocationView]:
        """Return the cached set, refreshing it via *loader* when stale."""
        if self._data is not None and self.is_fresh:
            return list(self._data)
        generation = self._generation
        data = list(await loader())
        if generation == self._generation:
            self._data = data
            self._captured_at = self._clock()
        return list(data)

    def invalidate(self) -> None:
        self._generation += 1
        self._data = None
