"""Shared query parameter parsing utilities for framework adapters."""

import math


def _parse_window_param(params: dict[str, list[str]]) -> int | None:
    """Parse and validate the 'window' query parameter.

    Args:
        params: Parsed query string parameters (as returned by urllib.parse.parse_qs).

    Returns:
        Window in milliseconds, or None if missing or invalid.
        Rejects negative, NaN, and infinite values.
    """
    raw = params.get("window")
    if not raw:
        return None
    try:
        value = float(raw[0])
    except ValueError:
        return None
    if value < 0 or not math.isfinite(value):
        return None
    return int(value) or None


def _parse_operation_param(params: dict[str, list[str]]) -> str | None:
    """Return the 'operation' query parameter, or None if missing/empty."""
    values = params.get("operation", [])
    return values[0] if values and values[0] else None
