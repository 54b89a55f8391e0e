"""Masking of credentials before they reach logs or poll diagnostics.

Two things in this domain are secret: the Motive API key (an ``X-Api-Key``
header, or an ``api_key`` query parameter in copied URLs) and anything
derived from the webhook secret (the ``X-KT-Webhook-Signature`` header).
Header names are matched case-insensitively.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

MASK = "<redacted>"

_SECRET_KEYS: frozenset[str] = frozenset(
    {
        "x-api-key",
        "api_key",
        "apikey",
        "authorization",
        "cookie",
        "x-kt-webhook-signature",
        "signature",
        "webhook_secret",
        "secret",
        "token",
    }
)

_SECRET_QUERY = re.compile(r"(?i)\b(api[_-]?key|token|signature)=[^&\s#]+")


def _mask_text(text: str, max_string: int) -> str:
    text = _SECRET_QUERY.sub(lambda m: f"{m.group(1)}={MASK}", text)
    if len(text) > max_string:
        return f"{text[:max_string]}...<{len(text) - max_string} more chars>"
    return text


def redact_for_log(value: Any, *, max_string: int = 512) -> Any:
    """Return a copy of *value* that is safe to log.

    Values under secret keys are replaced by ``<redacted>``, secret query
    parameters inside strings are masked, long strings are shortened and
    raw bytes are summarized by length. JSON payloads cannot be cyclic, so
    the walk is a plain recursion.
    """
    if isinstance(value, str):
        return _mask_text(value, max_string)
    if isinstance(value, (bytes, bytearray)):
        return f"<{len(value)} bytes>"
    if isinstance(value, Mapping):
        return {
            str(key): MASK if str(key).lower() in _SECRET_KEYS else redact_for_log(item, max_string=max_string)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [redact_for_log(item, max_string=max_string) for item in value]
    if value is None or isinstance(value, (bool, int, float)):
        return value
    return repr(value)
