"""Tracker configuration for fleettrack."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from fleettrack._constants import BASE_URL
from fleettrack.exceptions import ConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class TrackerConfig:
    """Tracker configuration.

    Parameters
    ----------
    api_key : str or None
        Motive API key sent as ``X-Api-Key``. When unset, polling is
        disabled entirely (the scheduler is never armed).
    base_url : str
        Upstream API base URL.
    poll_interval : float
        Seconds between poll cycle triggers. Defaults to 60.
    page_size : int
        Records requested per upstream page (``per_page``).
    max_pages : int
        Upper bound on pages fetched per telemetry class in one cycle.
    throttle_interval : float
        Minimum seconds between two accepted readings of the same vehicle.
    min_coordinate_delta : float
        Minimum change in degrees (latitude or longitude) for a reading to
        count as movement once the throttle window has elapsed.
    latest_cache_ttl : float
        Seconds the "latest position of every vehicle" result is served
        from memory.
    poll_log_size : int
        Capacity of the in-memory poll outcome ring buffer.
    request_timeout : float
        Total timeout in seconds for a single upstream HTTP request.
    webhook_secret : str or None
        Shared secret for HMAC-SHA1 webhook signatures.
    webhook_require_signature : bool
        Reject webhook requests that carry no signature header when a
        secret is configured. Invalid signatures are always rejected.
    """

    api_key: str | None = None
    base_url: str = BASE_URL
    poll_interval: float = 60.0
    page_size: int = 100
    max_pages: int = 500
    throttle_interval: float = 30.0
    min_coordinate_delta: float = 0.0001
    latest_cache_ttl: float = 10.0
    poll_log_size: int = 50
    request_timeout: float = 30.0
    webhook_secret: str | None = None
    webhook_require_signature: bool = False

    def __post_init__(self) -> None:
        if self.poll_interval <= 0:
            raise ConfigError(f"poll_interval must be positive, got {self.poll_interval}")
        if self.page_size <= 0:
            raise ConfigError(f"page_size must be positive, got {self.page_size}")
        if self.max_pages <= 0:
            raise ConfigError(f"max_pages must be positive, got {self.max_pages}")
        if self.throttle_interval < 0:
            raise ConfigError(f"throttle_interval must not be negative, got {self.throttle_interval}")
        if self.min_coordinate_delta < 0:
            raise ConfigError(f"min_coordinate_delta must not be negative, got {self.min_coordinate_delta}")
        if self.latest_cache_ttl < 0:
            raise ConfigError(f"latest_cache_ttl must not be negative, got {self.latest_cache_ttl}")
        if self.poll_log_size <= 0:
            raise ConfigError(f"poll_log_size must be positive, got {self.poll_log_size}")

    @property
    def polling_enabled(self) -> bool:
        """Whether an upstream credential is configured."""
        return bool(self.api_key)

    @classmethod
    def from_env(cls, **overrides: Any) -> TrackerConfig:
        """Create configuration from environment variables.

        Reads ``MOTIVE_API_KEY``, ``MOTIVE_WEBHOOK_SECRET`` and optional
        ``FLEETTRACK_*`` tuning variables. Explicit keyword arguments
        override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        TrackerConfig
            Populated configuration.

        Raises
        ------
        ConfigError
            If a numeric variable cannot be parsed.
        """
        env = os.environ

        config_kwargs: dict[str, Any] = {}

        _ENV_STR_MAP = {
            "MOTIVE_API_KEY": "api_key",
            "MOTIVE_WEBHOOK_SECRET": "webhook_secret",
            "FLEETTRACK_BASE_URL": "base_url",
        }
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val:
                config_kwargs[field_name] = val.strip()

        _ENV_NUMERIC_MAP: dict[str, tuple[str, type]] = {
            "FLEETTRACK_POLL_INTERVAL": ("poll_interval", float),
            "FLEETTRACK_PAGE_SIZE": ("page_size", int),
            "FLEETTRACK_MAX_PAGES": ("max_pages", int),
            "FLEETTRACK_THROTTLE_INTERVAL": ("throttle_interval", float),
            "FLEETTRACK_MIN_COORDINATE_DELTA": ("min_coordinate_delta", float),
            "FLEETTRACK_LATEST_CACHE_TTL": ("latest_cache_ttl", float),
            "FLEETTRACK_POLL_LOG_SIZE": ("poll_log_size", int),
            "FLEETTRACK_REQUEST_TIMEOUT": ("request_timeout", float),
        }
        for env_key, (field_name, cast) in _ENV_NUMERIC_MAP.items():
            val = env.get(env_key)
            if val is None or field_name in overrides:
                continue
            try:
                config_kwargs[field_name] = cast(val)
            except ValueError as exc:
                raise ConfigError(f"{env_key} must be a number, got {val!r}") from exc

        if "webhook_require_signature" not in overrides:
            config_kwargs["webhook_require_signature"] = _env_bool(
                env.get("FLEETTRACK_WEBHOOK_REQUIRE_SIGNATURE"),
                False,
            )

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
