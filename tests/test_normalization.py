from __future__ import annotations

from datetime import UTC, datetime

import pytest

from fleettrack.exceptions import InvalidReadingError, MalformedPayloadError
from fleettrack.ingestion.normalize import dig, first_present, safe_float, safe_str
from fleettrack.ingestion.records import extract_vehicle_id, normalize_record
from fleettrack.ingestion.shapes import match_coordinates
from fleettrack.models._base import parse_timestamp

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)


def test_safe_float_rejects_bools_nan_and_garbage() -> None:
    assert safe_float("42.5") == 42.5
    assert safe_float(7) == 7.0
    assert safe_float(True) is None
    assert safe_float(float("nan")) is None
    assert safe_float("fast") is None
    assert safe_float(None) is None


def test_safe_str_and_dig() -> None:
    assert safe_str("  ") is None
    assert safe_str(12) == "12"
    assert dig({"a": {"b": {"c": 1}}}, "a.b.c") == 1
    assert dig({"a": {"b": 1}}, "a.x") is None
    assert first_present(({"x": None}, {"x": 3}), ("x",)) == 3


@pytest.mark.parametrize(
    ("raw", "shape"),
    [
        ({"lat": 1.5, "lon": 2.5}, "flat"),
        ({"location": {"lat": 1.5, "lon": 2.5}}, "location"),
        ({"current_location": {"lat": 1.5, "lon": 2.5}}, "current_location"),
        ({"current_location": {"latitude": 1.5, "longitude": 2.5}}, "current_location_long"),
        ({"asset_gateway": {"last_location": {"lat": 1.5, "lon": 2.5}}}, "gateway_last_location"),
        ({"last_location": {"latitude": 1.5, "longitude": 2.5}}, "last_location_long"),
        ({"location": {"latitude": "1.5", "longitude": "2.5"}}, "location_long"),
        ({"latitude": 1.5, "longitude": 2.5}, "flat_long"),
    ],
)
def test_known_shapes_yield_the_same_coordinates(raw: dict, shape: str) -> None:
    match = match_coordinates(raw)
    assert match is not None
    assert match.shape == shape
    assert (match.latitude, match.longitude) == (1.5, 2.5)


def test_flat_coordinates_win_over_nested_ones() -> None:
    raw = {"lat": 10.0, "lon": 20.0, "current_location": {"lat": 30.0, "lon": 40.0}}
    candidate = normalize_record({"id": "v1", **raw}, now=NOW)
    assert (candidate.latitude, candidate.longitude) == (10.0, 20.0)


def test_polled_vehicle_record_normalizes_fully() -> None:
    raw = {
        "id": 123,
        "number": "Truck 7",
        "current_location": {
            "lat": 33.4484,
            "lon": -112.074,
            "located_at": "2024-05-01T11:59:30Z",
            "speed": 45,
            "bearing": 270,
        },
    }

    candidate = normalize_record(raw, now=NOW)

    assert candidate.vehicle_id == "123"
    assert candidate.latitude == 33.4484
    assert candidate.longitude == -112.074
    assert candidate.speed == 45.0
    assert candidate.heading == 270.0
    assert candidate.status == "moving"
    assert candidate.timestamp == datetime(2024, 5, 1, 11, 59, 30, tzinfo=UTC)


def test_kph_and_mph_inputs_end_up_on_the_same_scale() -> None:
    mph = normalize_record({"id": "a", "lat": 1, "lon": 1, "speed_mph": 62.1371}, now=NOW)
    kph = normalize_record({"id": "a", "lat": 1, "lon": 1, "speed_kph": 100}, now=NOW)
    labelled = normalize_record({"id": "a", "lat": 1, "lon": 1, "speed": 100, "speed_unit": "km/h"}, now=NOW)
    assumed = normalize_record({"id": "a", "lat": 1, "lon": 1, "speed": 100}, assume_kph=True, now=NOW)

    assert kph.speed == pytest.approx(mph.speed)
    assert labelled.speed == pytest.approx(mph.speed)
    assert assumed.speed == pytest.approx(mph.speed)


def test_negative_speed_is_clamped_to_zero() -> None:
    candidate = normalize_record({"id": "a", "lat": 1, "lon": 1, "speed": -3}, now=NOW)
    assert candidate.speed == 0.0
    assert candidate.status == "stopped"


def test_status_prefers_explicit_state_then_moving_flag() -> None:
    explicit = normalize_record({"id": "a", "lat": 1, "lon": 1, "speed": 10, "vehicle_state": "idle"}, now=NOW)
    flagged = normalize_record({"id": "a", "lat": 1, "lon": 1, "speed": 0, "moving": True}, now=NOW)
    assert explicit.status == "idle"
    assert flagged.status == "moving"


def test_null_island_is_rejected() -> None:
    with pytest.raises(InvalidReadingError):
        normalize_record({"id": "v1", "lat": 0, "lon": 0}, now=NOW)


def test_zero_on_one_axis_is_a_valid_fix() -> None:
    candidate = normalize_record({"id": "v1", "lat": 0, "lon": 12.5}, now=NOW)
    assert candidate.latitude == 0.0


def test_non_finite_coordinates_are_rejected() -> None:
    with pytest.raises(MalformedPayloadError):
        normalize_record({"id": "v1", "lat": "nan", "lon": 1}, now=NOW)
    with pytest.raises(InvalidReadingError):
        normalize_record({"id": "v1", "lat": float("inf"), "lon": 1}, now=NOW)


def test_record_without_coordinates_is_malformed() -> None:
    with pytest.raises(MalformedPayloadError):
        normalize_record({"id": "v1", "speed": 10}, now=NOW)
    with pytest.raises(MalformedPayloadError):
        normalize_record(["not", "a", "record"], now=NOW)


def test_missing_id_degrades_to_unknown() -> None:
    candidate = normalize_record({"lat": 5, "lon": 5}, now=NOW)
    assert candidate.vehicle_id == "unknown"


def test_vehicle_id_key_priority_and_prefix() -> None:
    assert extract_vehicle_id({"vehicle_id": "A", "id": "B"}) == "A"
    assert extract_vehicle_id({"vehicle": {"number": "N1"}}) == "N1"
    assert extract_vehicle_id({"id": 9}, prefix="asset-") == "asset-9"
    assert extract_vehicle_id({"id": "asset-9"}, prefix="asset-") == "asset-9"


def test_missing_timestamp_uses_observation_time() -> None:
    candidate = normalize_record({"id": "v1", "lat": 1, "lon": 2}, now=NOW)
    assert candidate.timestamp == NOW


def test_epoch_millisecond_timestamps_are_understood() -> None:
    candidate = normalize_record({"id": "v1", "lat": 1, "lon": 2, "timestamp": 1714564800000}, now=NOW)
    assert candidate.timestamp == datetime(2024, 5, 1, 12, 0, tzinfo=UTC)


def test_unparseable_timestamp_is_malformed() -> None:
    with pytest.raises(MalformedPayloadError):
        normalize_record({"id": "v1", "lat": 1, "lon": 2, "located_at": "yesterday-ish"}, now=NOW)


def test_oversized_numbers_are_rejected_not_raised() -> None:
    assert safe_float(10**400) is None
    with pytest.raises(MalformedPayloadError):
        normalize_record({"id": 1, "lat": 10**400, "lon": -96.7}, now=NOW)
    with pytest.raises(MalformedPayloadError):
        normalize_record({"id": 1, "lat": 32.7, "lon": -96.7, "timestamp": 10**400}, now=NOW)
    with pytest.raises(MalformedPayloadError):
        normalize_record({"id": 1, "lat": 32.7, "lon": -96.7, "located_at": "1" + "0" * 400}, now=NOW)


def test_offset_timestamps_are_converted_to_utc() -> None:
    parsed = parse_timestamp("2024-05-01T14:00:00+02:00")
    assert parsed == datetime(2024, 5, 1, 12, 0, tzinfo=UTC)
    assert parsed is not None and parsed.tzinfo is UTC

    candidate = normalize_record(
        {"id": "v1", "lat": 1, "lon": 2, "located_at": "2024-05-01T07:00:00-05:00"}, now=NOW
    )
    assert candidate.timestamp.tzinfo is UTC
    assert candidate.timestamp.isoformat() == "2024-05-01T12:00:00+00:00"


def test_asset_record_from_gateway_shape() -> None:
    raw = {
        "id": 55,
        "name": "Trailer 3",
        "asset_gateway": {
            "last_location": {"lat": 40.1, "lon": -74.2, "located_at": "2024-05-01T10:00:00Z", "speed": 10},
        },
    }
    candidate = normalize_record(raw, id_prefix="asset-", assume_kph=True, now=NOW)
    assert candidate.vehicle_id == "asset-55"
    assert candidate.speed == pytest.approx(6.21371)
