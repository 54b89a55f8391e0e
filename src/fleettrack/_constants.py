"""Internal constants shared across the library."""

BASE_URL = "https://api.gomotive.com"
USER_AGENT = "fleettrack/1.0"
API_KEY_HEADER = "X-Api-Key"
WEBHOOK_SIGNATURE_HEADER = "X-KT-Webhook-Signature"

VEHICLE_LOCATIONS_ENDPOINT = "/v3/vehicle_locations"
ASSET_LOCATIONS_ENDPOINT = "/v1/asset_locations"

ASSET_ID_PREFIX = "asset-"
UNKNOWN_VEHICLE_ID = "unknown"

DEFAULT_VEHICLE_COLOR = "#3b82f6"
DEFAULT_ASSET_COLOR = "#10b981"

LOCATION_WEBHOOK_ACTIONS: frozenset[str] = frozenset({"vehicle_location_received", "vehicle_location_updated"})

# ------------------------------------------------------------------
# Speed units
# ------------------------------------------------------------------

KPH_TO_MPH = 0.621371
KPH_UNIT_FLAGS: frozenset[str] = frozenset({"kph", "km/h", "kmh", "kmph"})


def kph_to_mph(speed_kph: float) -> float:
    """Convert km/h to the canonical mph scale."""
    return speed_kph * KPH_TO_MPH
