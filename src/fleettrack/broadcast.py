"""Live-update fan-out to connected subscribers."""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from fleettrack.models.events import LocationUpdateEvent

_logger = logging.getLogger(__name__)


class Subscriber(Protocol):
    """Anything that can receive a text frame.

    :class:`aiohttp.web.WebSocketResponse` satisfies this protocol.
    """

    @property
    def closed(self) -> bool: ...

    async def send_str(self, data: str) -> None: ...


class SubscriberSet:
    """Current live subscribers.

    Membership is owned by the transport: it adds a subscriber on connect
    and discards it on disconnect or error. The broadcaster only reads it.
    """

    def __init__(self) -> None:
        self._members: set[Subscriber] = set()

    def add(self, subscriber: Subscriber) -> None:
        self._members.add(subscriber)

    def discard(self, subscriber: Subscriber) -> None:
        self._members.discard(subscriber)

    def snapshot(self) -> list[Subscriber]:
        return list(self._members)

    def __len__(self) -> int:
        return len(self._members)


class Broadcaster:
    """Deliver one event to every subscriber connected at the moment of the event.

    No queueing for late joiners, no replay, no retries. Subscribers that are
    not deliverable are skipped.
    """

    def __init__(self, subscribers: SubscriberSet) -> None:
        self._subscribers = subscribers

    async def publish(self, event: LocationUpdateEvent) -> int:
        """Send *event* to all open subscribers; returns how many received it."""
        targets = [s for s in self._subscribers.snapshot() if not s.closed]
        if not targets:
            return 0

        message = event.to_json()
        results = await asyncio.gather(
            *(subscriber.send_str(message) for subscriber in targets),
            return_exceptions=True,
        )

        delivered = 0
        for result in results:
            if isinstance(result, BaseException):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                _logger.debug("Skipping undeliverable subscriber: %s", result)
                continue
            delivered += 1

        _logger.debug("Location update for %s broadcast to %d clients", event.data.id, delivered)
        return delivered
