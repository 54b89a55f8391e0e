"""Legacy push webhook.

Upstream can push single location records instead of being polled. Payloads
arrive in the same historical shapes the normalizer understands and go
through the same gate and ingestor as polled readings.

Upstream checks the endpoint with an array body (e.g.
``["vehicle_location_updated"]``) or an empty object when registering it;
both are acknowledged as no-ops.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.hmac import HMAC

from fleettrack._constants import DEFAULT_VEHICLE_COLOR, LOCATION_WEBHOOK_ACTIONS, WEBHOOK_SIGNATURE_HEADER
from fleettrack._redact import redact_for_log
from fleettrack.config import TrackerConfig
from fleettrack.exceptions import PayloadError, StorageError, WebhookSignatureError
from fleettrack.ingestion.apply import LocationIngestor
from fleettrack.ingestion.gate import GateDecision, ThrottleGate
from fleettrack.ingestion.records import normalize_record

_logger = logging.getLogger(__name__)


def compute_signature(body: bytes, secret: str) -> str:
    """HMAC-SHA1 of *body* keyed by *secret*, as lowercase hex."""
    mac = HMAC(secret.encode("utf-8"), hashes.SHA1())
    mac.update(body)
    return mac.finalize().hex()


def verify_signature(body: bytes, signature: str, secret: str) -> None:
    """Check a hex HMAC-SHA1 signature in constant time.

    Raises
    ------
    WebhookSignatureError
        If the signature is not valid hex or does not match.
    """
    try:
        expected = bytes.fromhex(signature.strip())
    except ValueError as exc:
        raise WebhookSignatureError("signature is not hex-encoded") from exc
    mac = HMAC(secret.encode("utf-8"), hashes.SHA1())
    mac.update(body)
    try:
        mac.verify(expected)
    except InvalidSignature as exc:
        raise WebhookSignatureError("signature mismatch") from exc


@dataclass(frozen=True)
class WebhookResult:
    """HTTP status and JSON body to answer the webhook request with."""

    status: int
    body: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, message: str, **extra: Any) -> WebhookResult:
        return cls(200, {"success": True, "message": message, **extra})

    @classmethod
    def error(cls, status: int, message: str) -> WebhookResult:
        return cls(status, {"success": False, "error": message})


def _header(headers: Mapping[str, str], name: str) -> str | None:
    lowered = name.lower()
    for key, value in headers.items():
        if key.lower() == lowered:
            return value
    return None


class WebhookProcessor:
    """Validate, normalize and ingest one pushed payload."""

    def __init__(
        self,
        *,
        config: TrackerConfig,
        gate: ThrottleGate,
        ingestor: LocationIngestor,
        default_color: str = DEFAULT_VEHICLE_COLOR,
    ) -> None:
        self._config = config
        self._gate = gate
        self._ingestor = ingestor
        self._default_color = default_color

    def _check_signature(self, body: bytes, headers: Mapping[str, str]) -> None:
        secret = self._config.webhook_secret
        if not secret:
            return
        signature = _header(headers, WEBHOOK_SIGNATURE_HEADER)
        if not signature:
            if self._config.webhook_require_signature:
                raise WebhookSignatureError("signature header missing")
            _logger.warning("Webhook received without signature - accepting")
            return
        verify_signature(body, signature, secret)

    async def handle(self, body: bytes, headers: Mapping[str, str]) -> WebhookResult:
        _logger.debug("Webhook received headers=%s", redact_for_log(dict(headers)))

        try:
            self._check_signature(body, headers)
        except WebhookSignatureError as exc:
            _logger.warning("Rejected webhook: %s", exc)
            return WebhookResult.error(401, f"Invalid webhook signature: {exc}")

        if not body.strip():
            return WebhookResult.ok("Webhook received")
        try:
            payload = json.loads(body)
        except ValueError:
            return WebhookResult.error(400, "Body is not valid JSON")

        if isinstance(payload, list):
            _logger.info("Webhook verification request: %s", redact_for_log(payload))
            return WebhookResult.ok("Webhook endpoint verified")
        if not payload:
            return WebhookResult.ok("Webhook received")
        if not isinstance(payload, dict):
            return WebhookResult.error(400, "Expected a JSON object")

        action = payload.get("action")
        if action is not None and action not in LOCATION_WEBHOOK_ACTIONS:
            _logger.info("Ignoring webhook action: %s", action)
            return WebhookResult.ok("Webhook received but not a location update")

        try:
            candidate = normalize_record(payload)
        except PayloadError as exc:
            _logger.info("Could not extract location from webhook: %s", exc)
            return WebhookResult.error(400, str(exc))

        decision = self._gate.evaluate(candidate.vehicle_id, candidate.latitude, candidate.longitude)
        if decision is GateDecision.THROTTLED:
            return WebhookResult.ok("Update throttled")
        if decision is GateDecision.UNCHANGED:
            return WebhookResult.ok("Location unchanged - skipped")

        try:
            reading = await self._ingestor.ingest(candidate, default_color=self._default_color)
        except StorageError as exc:
            self._gate.forget(candidate.vehicle_id)
            _logger.error("Webhook storage error for %s: %s", candidate.vehicle_id, exc)
            return WebhookResult.error(500, "Failed to store location")

        return WebhookResult.ok("Location stored", id=reading.id)
