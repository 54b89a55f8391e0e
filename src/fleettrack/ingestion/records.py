"""Turn one raw telemetry record into a canonical :class:`LocationCandidate`.

Used by both the polling pipeline (after unwrapping the per-entry
``vehicle``/``asset`` envelope) and the legacy webhook.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from pydantic import ValidationError

from fleettrack._constants import KPH_UNIT_FLAGS, UNKNOWN_VEHICLE_ID, kph_to_mph
from fleettrack.exceptions import InvalidReadingError, MalformedPayloadError
from fleettrack.ingestion.normalize import finite_or_none, first_present, safe_str
from fleettrack.ingestion.shapes import SHAPE_MATCHERS, ShapeMatcher, match_coordinates
from fleettrack.models._base import parse_timestamp
from fleettrack.models.location import LocationCandidate

VEHICLE_ID_KEYS: tuple[str, ...] = ("vehicle_id", "vehicle_number", "vehicle.id", "vehicle.number", "id", "number")
MPH_SPEED_KEYS: tuple[str, ...] = ("speed_mph",)
KPH_SPEED_KEYS: tuple[str, ...] = ("speed_kph", "kph", "ground_speed_kph")
SPEED_KEYS: tuple[str, ...] = ("speed",)
SPEED_UNIT_KEYS: tuple[str, ...] = ("speed_unit", "speed_units")
HEADING_KEYS: tuple[str, ...] = ("heading", "bearing", "course")
STATUS_KEYS: tuple[str, ...] = ("vehicle_state", "status", "state")
MOVING_FLAG_KEYS: tuple[str, ...] = ("moving",)
TIMESTAMP_KEYS: tuple[str, ...] = ("located_at", "timestamp", "time")


def extract_vehicle_id(raw: Mapping[str, Any], *, prefix: str = "") -> str:
    """Return the record's vehicle id, or ``"unknown"`` when none is present.

    A missing id never rejects the record; a degraded id still helps
    attribute the reading.
    """
    vehicle_id = safe_str(first_present((raw,), VEHICLE_ID_KEYS)) or UNKNOWN_VEHICLE_ID
    if prefix and not vehicle_id.startswith(prefix):
        vehicle_id = f"{prefix}{vehicle_id}"
    return vehicle_id


def _sources(container: Mapping[str, Any], raw: Mapping[str, Any]) -> tuple[Mapping[str, Any], ...]:
    if container is raw:
        return (raw,)
    return (container, raw)


def _speed_mph(sources: tuple[Mapping[str, Any], ...], *, assume_kph: bool) -> float:
    mph = finite_or_none(first_present(sources, MPH_SPEED_KEYS))
    if mph is not None:
        return max(mph, 0.0)

    kph = finite_or_none(first_present(sources, KPH_SPEED_KEYS))
    if kph is not None:
        return max(kph_to_mph(kph), 0.0)

    speed = finite_or_none(first_present(sources, SPEED_KEYS))
    if speed is None:
        return 0.0
    unit = safe_str(first_present(sources, SPEED_UNIT_KEYS))
    if assume_kph or (unit is not None and unit.lower() in KPH_UNIT_FLAGS):
        speed = kph_to_mph(speed)
    return max(speed, 0.0)


def _status(sources: tuple[Mapping[str, Any], ...], speed: float) -> str:
    explicit = safe_str(first_present(sources, STATUS_KEYS))
    if explicit is not None:
        return explicit
    moving = first_present(sources, MOVING_FLAG_KEYS)
    if isinstance(moving, bool):
        return "moving" if moving else "stopped"
    return "moving" if speed > 0 else "stopped"


def _timestamp(sources: tuple[Mapping[str, Any], ...], now: datetime | None) -> datetime:
    value = first_present(sources, TIMESTAMP_KEYS)
    try:
        parsed = parse_timestamp(value)
    except (TypeError, ValueError, OverflowError, OSError) as exc:
        raise MalformedPayloadError(f"unparseable timestamp {value!r}") from exc
    if parsed is None:
        return now if now is not None else datetime.now(UTC)
    return parsed


def normalize_record(
    raw: Any,
    *,
    id_prefix: str = "",
    assume_kph: bool = False,
    now: datetime | None = None,
    matchers: tuple[ShapeMatcher, ...] = SHAPE_MATCHERS,
) -> LocationCandidate:
    """Normalize one raw record into a canonical reading candidate.

    Parameters
    ----------
    raw
        A single telemetry record in any of the known payload shapes.
    id_prefix
        Prefix applied to the vehicle id (``"asset-"`` for the asset feed).
    assume_kph
        Treat an unlabelled ``speed`` as km/h (the asset feed reports km/h).
    now
        Observation time used when the record carries no timestamp.
    matchers
        Coordinate shape matchers in priority order.

    Raises
    ------
    MalformedPayloadError
        If no shape yields both coordinates or the timestamp is unparseable.
    InvalidReadingError
        If the coordinates are non-finite or exactly ``(0, 0)``.
    """
    if not isinstance(raw, Mapping):
        raise MalformedPayloadError(f"expected an object, got {type(raw).__name__}")

    match = match_coordinates(raw, matchers)
    if match is None:
        raise MalformedPayloadError("no latitude/longitude found in payload")

    vehicle_id = extract_vehicle_id(raw, prefix=id_prefix)
    lat, lon = match.latitude, match.longitude
    if not (math.isfinite(lat) and math.isfinite(lon)):
        raise InvalidReadingError(f"non-finite coordinates for {vehicle_id}: lat={lat} lon={lon}")
    if lat == 0 and lon == 0:
        raise InvalidReadingError(f"no GPS fix for {vehicle_id}: (0, 0)")

    sources = _sources(match.container, raw)
    speed = _speed_mph(sources, assume_kph=assume_kph)
    heading = finite_or_none(first_present(sources, HEADING_KEYS)) or 0.0

    try:
        return LocationCandidate(
            vehicle_id=vehicle_id,
            latitude=lat,
            longitude=lon,
            speed=speed,
            heading=heading,
            status=_status(sources, speed),
            timestamp=_timestamp(sources, now),
        )
    except ValidationError as exc:
        raise InvalidReadingError(f"invalid reading for {vehicle_id}: {exc}") from exc
