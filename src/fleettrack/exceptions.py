"""Custom exception hierarchy for fleettrack."""

from __future__ import annotations


class FleetTrackError(Exception):
    """Base exception for all fleettrack errors."""


class ConfigError(FleetTrackError):
    """Invalid or missing configuration."""


class TransportError(FleetTrackError):
    """HTTP-level failure talking to the upstream API (network, non-2xx, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class EndpointNotAvailableError(TransportError):
    """Upstream endpoint is structurally absent for this account (HTTP 404).

    Raised for optional telemetry classes (e.g. assets) so the pipeline can
    treat a missing feature as an empty result instead of a failure.
    """


class PayloadError(FleetTrackError):
    """A single telemetry record could not be turned into a reading.

    Record-level: callers skip the record and carry on with the batch.
    """


class MalformedPayloadError(PayloadError):
    """No known payload shape matched, or a field could not be parsed."""


class InvalidReadingError(PayloadError):
    """Coordinates parsed but are not a usable fix (non-finite or ``(0, 0)``)."""


class StorageError(FleetTrackError):
    """Storage collaborator failed to read or write."""


class WebhookSignatureError(FleetTrackError):
    """Webhook HMAC signature missing or invalid."""
