"""Normalization helpers.

Centralizes tolerant parsing of loosely-typed upstream payloads.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from typing import Any


def safe_float(value: Any) -> float | None:
    if value is None or value == "" or value == "--":
        return None
    if isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    if math.isnan(result):
        return None
    return result


def finite_or_none(value: Any) -> float | None:
    parsed = safe_float(value)
    if parsed is None or not math.isfinite(parsed):
        return None
    return parsed


def safe_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text if text else None


def dig(data: Any, path: str) -> Any:
    """Walk a dotted *path* through nested mappings.

    Returns ``None`` when any segment is missing or not a mapping.
    An empty path returns *data* itself.
    """
    if not path:
        return data
    current = data
    for key in path.split("."):
        if not isinstance(current, Mapping):
            return None
        current = current.get(key)
    return current


def first_present(sources: Iterable[Mapping[str, Any]], keys: Iterable[str]) -> Any:
    """Return the first non-empty value for any of *keys* across *sources*.

    Sources are searched in order, and within a source keys are tried in
    order. ``None`` and ``""`` count as absent; ``0`` and ``False`` do not.
    """
    key_list = tuple(keys)
    for source in sources:
        for key in key_list:
            value = dig(source, key)
            if value is None or value == "":
                continue
            return value
    return None
