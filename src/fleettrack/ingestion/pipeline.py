"""Polling ingestion pipeline.

One poll cycle walks every telemetry class (vehicles, then assets):

    fetch page -> unwrap entries -> normalize -> gate -> persist/broadcast

Failures are contained at the narrowest level that makes sense. A bad record
is skipped, a transport failure ends that class for this cycle, and the other
class still runs. Only one cycle runs at a time; a trigger that arrives while
a cycle is in progress is dropped, not queued.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable, Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from fleettrack._constants import (
    ASSET_ID_PREFIX,
    ASSET_LOCATIONS_ENDPOINT,
    DEFAULT_ASSET_COLOR,
    DEFAULT_VEHICLE_COLOR,
    VEHICLE_LOCATIONS_ENDPOINT,
)
from fleettrack._redact import redact_for_log
from fleettrack._transport import Transport
from fleettrack.config import TrackerConfig
from fleettrack.exceptions import EndpointNotAvailableError, PayloadError, StorageError, TransportError
from fleettrack.ingestion.apply import LocationIngestor
from fleettrack.ingestion.gate import ThrottleGate
from fleettrack.ingestion.normalize import finite_or_none
from fleettrack.ingestion.records import normalize_record
from fleettrack.models.poll import CycleReport, PollOutcome, PollState, TelemetryClass
from fleettrack.state.poll_log import PollResultLog

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class TelemetryClassSpec:
    """How to poll and interpret one upstream telemetry class.

    Parameters
    ----------
    telemetry_class
        Which class this is.
    endpoint
        Paginated listing endpoint path.
    list_keys
        Body keys that may hold the page's records, tried in order.
    entry_key
        Key wrapping each record inside a list entry (``{"vehicle": {...}}``).
    id_prefix
        Prefix applied to ids so the class shares the vehicle id namespace.
    default_color
        Display color for automatically created metadata.
    assume_kph
        Unlabelled speeds from this feed are km/h.
    optional
        HTTP 404 means the account lacks the feature, reported as an empty
        successful poll rather than a failure.
    """

    telemetry_class: TelemetryClass
    endpoint: str
    list_keys: tuple[str, ...]
    entry_key: str
    id_prefix: str = ""
    default_color: str = DEFAULT_VEHICLE_COLOR
    assume_kph: bool = False
    optional: bool = False


VEHICLES = TelemetryClassSpec(
    telemetry_class=TelemetryClass.VEHICLES,
    endpoint=VEHICLE_LOCATIONS_ENDPOINT,
    list_keys=("vehicles", "vehicle_locations"),
    entry_key="vehicle",
)

ASSETS = TelemetryClassSpec(
    telemetry_class=TelemetryClass.ASSETS,
    endpoint=ASSET_LOCATIONS_ENDPOINT,
    list_keys=("assets", "asset_locations"),
    entry_key="asset",
    id_prefix=ASSET_ID_PREFIX,
    default_color=DEFAULT_ASSET_COLOR,
    assume_kph=True,
    optional=True,
)

DEFAULT_TELEMETRY_CLASSES: tuple[TelemetryClassSpec, ...] = (VEHICLES, ASSETS)


@dataclass
class _ClassTally:
    pages: int = 0
    total_records: int = 0
    processed: int = 0
    skipped: int = 0
    gated: int = 0

    def as_dict(self) -> dict[str, int]:
        return {
            "pages": self.pages,
            "total_records": self.total_records,
            "processed": self.processed,
            "skipped": self.skipped,
            "gated": self.gated,
        }


def extract_records(body: Mapping[str, Any], list_keys: Sequence[str]) -> list[Any]:
    for key in list_keys:
        value = body.get(key)
        if isinstance(value, list):
            return value
    return []


def unwrap_entry(entry: Any, entry_key: str) -> Any:
    if isinstance(entry, Mapping):
        inner = entry.get(entry_key)
        if isinstance(inner, Mapping):
            return inner
    return entry


def has_more_pages(body: Mapping[str, Any], *, page: int, returned: int, page_size: int) -> bool:
    """Decide whether another page follows *page*.

    A finite ``pagination.total_pages`` wins. Without one, a page holding
    fewer than ``page_size`` records is the last one.
    """
    pagination = body.get("pagination")
    if isinstance(pagination, Mapping):
        total_pages = finite_or_none(pagination.get("total_pages"))
        if total_pages is not None:
            return page < total_pages
    return returned >= page_size


class IngestionPipeline:
    """Drive poll cycles across telemetry classes."""

    def __init__(
        self,
        *,
        config: TrackerConfig,
        transport: Transport | None,
        gate: ThrottleGate,
        ingestor: LocationIngestor,
        poll_log: PollResultLog,
        classes: Sequence[TelemetryClassSpec] = DEFAULT_TELEMETRY_CLASSES,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._config = config
        self._transport = transport
        self._gate = gate
        self._ingestor = ingestor
        self._poll_log = poll_log
        self._classes = tuple(classes)
        self._clock = clock
        self._state = PollState.IDLE

    @property
    def state(self) -> PollState:
        return self._state

    @property
    def enabled(self) -> bool:
        return self._config.polling_enabled and self._transport is not None

    async def run_cycle(self) -> CycleReport:
        """Run one poll cycle unless one is already running."""
        if not self.enabled:
            _logger.info("MOTIVE_API_KEY not set - skipping location poll")
            return CycleReport(skipped=True, reason="disabled")
        if self._state is PollState.RUNNING:
            _logger.info("Previous poll still in progress - skipping")
            return CycleReport(skipped=True, reason="in_progress")

        self._state = PollState.RUNNING
        try:
            _logger.info("Starting Motive API poll")
            outcomes = [await self.poll_class(spec) for spec in self._classes]
            _logger.info("Motive API poll complete")
        finally:
            self._state = PollState.IDLE
        return CycleReport(outcomes=outcomes)

    async def poll_class(self, spec: TelemetryClassSpec) -> PollOutcome:
        """Poll every page of one telemetry class and record the outcome."""
        name = spec.telemetry_class.value
        tally = _ClassTally()
        try:
            async for records in self._iter_pages(spec, tally):
                for entry in records:
                    await self._process_entry(spec, entry, tally)
        except EndpointNotAvailableError as exc:
            if not spec.optional:
                _logger.warning("Motive %s API error: %s", name, exc)
                outcome = self._failure(spec, exc, tally)
            else:
                _logger.info("%s endpoint not available (404) - account has no %s tracking", name, name)
                outcome = PollOutcome(
                    telemetry_class=spec.telemetry_class,
                    success=True,
                    count=tally.processed,
                    raw={"message": "Endpoint not available", **tally.as_dict()},
                )
        except TransportError as exc:
            _logger.warning("Motive %s API error: %s", name, exc)
            outcome = self._failure(spec, exc, tally)
        except Exception as exc:
            _logger.exception("Unexpected error polling %s", name)
            outcome = self._failure(spec, exc, tally)
        else:
            _logger.info(
                "%s poll complete: %d locations processed from %d records",
                name,
                tally.processed,
                tally.total_records,
            )
            outcome = PollOutcome(
                telemetry_class=spec.telemetry_class,
                success=True,
                count=tally.processed,
                raw=tally.as_dict(),
            )

        self._poll_log.record(outcome)
        return outcome

    def _failure(self, spec: TelemetryClassSpec, exc: Exception, tally: _ClassTally) -> PollOutcome:
        raw: dict[str, Any] = tally.as_dict()
        raw["endpoint"] = spec.endpoint
        if isinstance(exc, TransportError):
            raw["endpoint"] = exc.endpoint or spec.endpoint
            if exc.status_code is not None:
                raw["status_code"] = exc.status_code
        return PollOutcome(
            telemetry_class=spec.telemetry_class,
            success=False,
            count=tally.processed,
            error=str(exc) or type(exc).__name__,
            raw=raw,
        )

    async def _iter_pages(self, spec: TelemetryClassSpec, tally: _ClassTally) -> AsyncIterator[list[Any]]:
        transport = self._transport
        if transport is None:
            return
        page_size = self._config.page_size
        page = 1
        while True:
            body = await transport.get_json(spec.endpoint, {"per_page": page_size, "page_no": page})
            records = extract_records(body, spec.list_keys)
            if not records:
                return

            tally.pages = page
            tally.total_records += len(records)
            yield records

            if not has_more_pages(body, page=page, returned=len(records), page_size=page_size):
                return
            if page >= self._config.max_pages:
                _logger.warning(
                    "Stopping %s pagination at max_pages=%d", spec.telemetry_class.value, self._config.max_pages
                )
                return
            page += 1
            # Let subscriber and admin traffic in between pages.
            await asyncio.sleep(0)

    async def _process_entry(self, spec: TelemetryClassSpec, entry: Any, tally: _ClassTally) -> None:
        record = unwrap_entry(entry, spec.entry_key)
        try:
            candidate = normalize_record(
                record,
                id_prefix=spec.id_prefix,
                assume_kph=spec.assume_kph,
                now=self._clock(),
            )
        except PayloadError as exc:
            tally.skipped += 1
            _logger.debug("Skipping %s record: %s", spec.telemetry_class.value, exc)
            return

        vehicle_id = candidate.vehicle_id
        decision = self._gate.evaluate(vehicle_id, candidate.latitude, candidate.longitude)
        if not decision.accepted:
            tally.gated += 1
            _logger.debug("Gate %s reading for %s", decision.value, vehicle_id)
            return

        try:
            await self._ingestor.ingest(candidate, default_color=spec.default_color)
        except StorageError as exc:
            tally.skipped += 1
            self._gate.forget(vehicle_id)
            _logger.warning("Error storing %s reading for %s: %s", spec.telemetry_class.value, vehicle_id, exc)
            return
        except Exception:
            tally.skipped += 1
            self._gate.forget(vehicle_id)
            _logger.exception("Error processing %s record %s", spec.telemetry_class.value, redact_for_log(record))
            return
        tally.processed += 1


class PollScheduler:
    """Fire a poll cycle immediately and then every ``interval`` seconds.

    Ticks do not wait for the previous cycle; an overlapping tick is a no-op
    inside :meth:`IngestionPipeline.run_cycle`.
    """

    def __init__(self, pipeline: IngestionPipeline, *, interval: float) -> None:
        self._pipeline = pipeline
        self._interval = interval
        self._timer: asyncio.Task[None] | None = None
        self._cycles: set[asyncio.Task[CycleReport]] = set()

    @property
    def running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def start(self) -> bool:
        """Arm the timer. Returns ``False`` when polling cannot or need not start."""
        if self._timer is not None:
            _logger.info("Polling already running - skipping duplicate start")
            return False
        if not self._pipeline.enabled:
            _logger.warning("MOTIVE_API_KEY not set - polling disabled")
            return False
        _logger.info("Starting Motive API polling every %s seconds", self._interval)
        self._timer = asyncio.create_task(self._tick_forever(), name="fleettrack-poll-timer")
        return True

    async def stop(self) -> None:
        """Disarm the timer and wait for any in-flight cycle to finish."""
        timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()
            try:
                await timer
            except asyncio.CancelledError:
                pass
            _logger.info("Motive API polling stopped")
        if self._cycles:
            await asyncio.gather(*self._cycles, return_exceptions=True)

    async def _tick_forever(self) -> None:
        while True:
            self._spawn_cycle()
            await asyncio.sleep(self._interval)

    def _spawn_cycle(self) -> None:
        task = asyncio.create_task(self._pipeline.run_cycle(), name="fleettrack-poll-cycle")
        self._cycles.add(task)
        task.add_done_callback(self._on_cycle_done)

    def _on_cycle_done(self, task: asyncio.Task[CycleReport]) -> None:
        self._cycles.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            _logger.error("Poll cycle failed unexpectedly", exc_info=exc)
