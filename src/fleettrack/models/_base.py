"""Base model and timestamp coercion shared by fleettrack models.

Every fleettrack model inherits from :class:`TrackerBaseModel` which
provides frozen, extra-tolerant pydantic configuration.

Timestamps arrive from upstream as ISO-8601 strings, epoch seconds or
epoch milliseconds. :func:`parse_timestamp` folds all of them into a
timezone-aware UTC :class:`~datetime.datetime`, and :data:`UtcTimestamp`
applies it as a field validator.
"""

from __future__ import annotations

import math
from datetime import UTC, datetime
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict

# Threshold to distinguish seconds from milliseconds.
_MS_THRESHOLD = 1_000_000_000_000


def parse_timestamp(value: Any) -> datetime | None:
    """Convert an upstream timestamp to a UTC datetime.

    Accepts datetimes (naive values are assumed UTC, aware ones converted),
    ISO-8601 strings (including a trailing ``Z``) and epoch seconds or
    milliseconds.

    Returns ``None`` when *value* is ``None`` or empty.

    Raises
    ------
    ValueError
        If *value* is present but cannot be interpreted as a timestamp.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return _as_utc(value)
    if isinstance(value, bool):
        raise ValueError(f"not a timestamp: {value!r}")
    if isinstance(value, (int, float)):
        return _from_epoch(value)
    if isinstance(value, str):
        text = value.strip()
        try:
            epoch = float(text)
        except ValueError:
            return _as_utc(datetime.fromisoformat(text))
        return _from_epoch(epoch)
    raise ValueError(f"not a timestamp: {value!r}")


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _from_epoch(value: float) -> datetime:
    try:
        ts = float(value)
    except OverflowError as exc:
        raise ValueError(f"epoch timestamp out of range: {value!r}") from exc
    if not math.isfinite(ts) or ts <= 0:
        raise ValueError(f"not a valid epoch timestamp: {ts!r}")
    if ts >= _MS_THRESHOLD:
        ts /= 1000.0
    try:
        return datetime.fromtimestamp(ts, tz=UTC)
    except (OverflowError, OSError) as exc:
        raise ValueError(f"epoch timestamp out of range: {value!r}") from exc


UtcTimestamp = Annotated[datetime, BeforeValidator(parse_timestamp)]
"""Annotated type that coerces upstream timestamps to UTC datetimes."""


class TrackerBaseModel(BaseModel):
    """Base for fleettrack models."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
    )
