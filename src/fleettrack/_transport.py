"""HTTP transport for the upstream telemetry API."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Mapping
from typing import Any, Protocol

import aiohttp

from fleettrack._constants import API_KEY_HEADER, USER_AGENT
from fleettrack._redact import redact_for_log
from fleettrack.config import TrackerConfig
from fleettrack.exceptions import EndpointNotAvailableError, TransportError

_logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Structural transport interface used by the ingestion pipeline.

    Having a protocol here makes it easy to pass test doubles/mocks while
    keeping the production implementation (`MotiveTransport`) concrete.
    """

    async def get_json(self, endpoint: str, params: Mapping[str, Any]) -> dict[str, Any]:
        ...


class MotiveTransport:
    """Authenticated JSON GETs against the Motive API."""

    def __init__(self, config: TrackerConfig, http_session: aiohttp.ClientSession) -> None:
        self._config = config
        self._http = http_session
        self._timeout = aiohttp.ClientTimeout(total=config.request_timeout)

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {
            "accept": "application/json",
            "user-agent": USER_AGENT,
        }
        if self._config.api_key:
            headers[API_KEY_HEADER] = self._config.api_key
        return headers

    async def get_json(self, endpoint: str, params: Mapping[str, Any]) -> dict[str, Any]:
        """GET *endpoint* and decode the JSON object body.

        Raises
        ------
        EndpointNotAvailableError
            On HTTP 404.
        TransportError
            On any other non-2xx status, network failure, timeout, or a body
            that is not a JSON object.
        """
        url = f"{self._config.base_url}{endpoint}"
        query = {key: str(value) for key, value in params.items()}

        _logger.debug("GET %s params=%s headers=%s", url, query, redact_for_log(self._headers()))

        try:
            async with self._http.get(url, params=query, headers=self._headers(), timeout=self._timeout) as resp:
                text = await resp.text()
                if resp.status == 404:
                    raise EndpointNotAvailableError(
                        f"HTTP 404: {text[:200]}",
                        status_code=404,
                        endpoint=endpoint,
                    )
                if not 200 <= resp.status < 300:
                    raise TransportError(
                        f"HTTP {resp.status}: {text[:200]}",
                        status_code=resp.status,
                        endpoint=endpoint,
                    )
        except TransportError:
            raise
        except asyncio.TimeoutError as exc:
            raise TransportError(f"Request to {endpoint} timed out", endpoint=endpoint) from exc
        except aiohttp.ClientError as exc:
            raise TransportError(f"Request to {endpoint} failed: {exc}", endpoint=endpoint) from exc

        try:
            body = json.loads(text)
        except ValueError as exc:
            raise TransportError(
                f"Invalid JSON from {endpoint}: {text[:200]}",
                status_code=resp.status,
                endpoint=endpoint,
            ) from exc

        if not isinstance(body, dict):
            raise TransportError(
                f"Expected a JSON object from {endpoint}, got {type(body).__name__}",
                status_code=resp.status,
                endpoint=endpoint,
            )
        return body
