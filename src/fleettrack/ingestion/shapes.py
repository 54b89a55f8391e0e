"""Coordinate shape matchers.

Upstream has sent coordinates in several layouts over time (flat fields,
``location``, ``current_location``, asset gateway ``last_location``). Each
layout is a matcher ``(raw) -> ShapeMatch | None``; :data:`SHAPE_MATCHERS`
lists them in priority order and the first match wins.

The matched ``container`` is the mapping the coordinates came from. The
record normalizer reads speed, heading, status and timestamp from it before
falling back to the record root.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from fleettrack.ingestion.normalize import dig, safe_float


@dataclass(frozen=True)
class ShapeMatch:
    shape: str
    latitude: float
    longitude: float
    container: Mapping[str, Any]


ShapeMatcher = Callable[[Mapping[str, Any]], ShapeMatch | None]


def coordinate_matcher(shape: str, path: str, lat_key: str, lon_key: str) -> ShapeMatcher:
    """Build a matcher for coordinates stored as ``<path>.<lat_key>/<lon_key>``."""

    def _match(raw: Mapping[str, Any]) -> ShapeMatch | None:
        container = dig(raw, path)
        if not isinstance(container, Mapping):
            return None
        lat = safe_float(container.get(lat_key))
        lon = safe_float(container.get(lon_key))
        if lat is None or lon is None:
            return None
        return ShapeMatch(shape=shape, latitude=lat, longitude=lon, container=container)

    _match.__name__ = f"match_{shape}"
    return _match


SHAPE_MATCHERS: tuple[ShapeMatcher, ...] = (
    coordinate_matcher("flat", "", "lat", "lon"),
    coordinate_matcher("location", "location", "lat", "lon"),
    coordinate_matcher("current_location", "current_location", "lat", "lon"),
    coordinate_matcher("current_location_long", "current_location", "latitude", "longitude"),
    coordinate_matcher("gateway_last_location", "asset_gateway.last_location", "lat", "lon"),
    coordinate_matcher("gateway_last_location_long", "asset_gateway.last_location", "latitude", "longitude"),
    coordinate_matcher("last_location", "last_location", "lat", "lon"),
    coordinate_matcher("last_location_long", "last_location", "latitude", "longitude"),
    coordinate_matcher("location_long", "location", "latitude", "longitude"),
    coordinate_matcher("flat_long", "", "latitude", "longitude"),
)


def match_coordinates(
    raw: Mapping[str, Any],
    matchers: Sequence[ShapeMatcher] = SHAPE_MATCHERS,
) -> ShapeMatch | None:
    for matcher in matchers:
        match = matcher(raw)
        if match is not None:
            return match
    return None
