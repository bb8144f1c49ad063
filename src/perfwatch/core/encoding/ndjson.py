"""NDJSON encoder for alerts and samples."""

import json
from collections.abc import Iterable
from typing import Any

from perfwatch.core.encoding.json_export import alert_to_dict, sample_to_dict
from perfwatch.core.models import Alert, Sample


def _encode_lines(objects: Iterable[dict[str, Any]]) -> str:
    lines = [json.dumps(obj) for obj in objects]

    if not lines:
        return ""

    return "\n".join(lines) + "\n"


def encode_alerts(alerts: Iterable[Alert]) -> str:
    """Encode alerts to newline-delimited JSON.

    Args:
        alerts: An iterable of Alert objects.

    Returns:
        NDJSON string with one JSON object per line.
        Empty string if no alerts.
    """
    return _encode_lines(alert_to_dict(a) for a in alerts)


def encode_samples(samples: Iterable[Sample]) -> str:
    """Encode samples to newline-delimited JSON."""
    return _encode_lines(sample_to_dict(s) for s in samples)
