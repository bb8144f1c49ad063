"""Prometheus text format encoder for operation stats."""

import re
from collections.abc import Mapping

from perfwatch.core.models import OperationStats

_INVALID_NAME_CHARS = re.compile(r"[^a-zA-Z0-9_]")


def sanitize_metric_name(operation: str) -> str:
    """Replace every character Prometheus does not allow with '_'.

    Args:
        operation: Operation name (e.g., "db.query").

    Returns:
        Sanitized name (e.g., "db_query").
    """
    return _INVALID_NAME_CHARS.sub("_", operation)


def _format_value(value: float) -> str:
    if isinstance(value, int):
        return str(value)
    return repr(float(value))


def encode_stats(stats_by_operation: Mapping[str, OperationStats]) -> str:
    """Encode per-operation stats to Prometheus text exposition format.

    Each operation produces a duration sum/count pair (in seconds) plus
    success_rate and throughput gauges.

    Args:
        stats_by_operation: Stats keyed by operation name.

    Returns:
        Prometheus text format string, newline-terminated.
        Empty string if there are no operations.
    """
    lines: list[str] = []
    for operation, stats in stats_by_operation.items():
        name = sanitize_metric_name(operation)
        duration_sum_seconds = stats.average_duration_ms * stats.count / 1000

        lines.append(f"# HELP {name}_duration_seconds Operation duration")
        lines.append(f"# TYPE {name}_duration_seconds histogram")
        lines.append(
            f"{name}_duration_seconds_sum {_format_value(duration_sum_seconds)}"
        )
        lines.append(f"{name}_duration_seconds_count {stats.count}")

        lines.append(f"# HELP {name}_success_rate Success rate of operations")
        lines.append(f"# TYPE {name}_success_rate gauge")
        lines.append(f"{name}_success_rate {_format_value(stats.success_rate)}")

        lines.append(f"# HELP {name}_throughput Operations per second")
        lines.append(f"# TYPE {name}_throughput gauge")
        lines.append(f"{name}_throughput {_format_value(stats.throughput_per_sec)}")

    if not lines:
        return ""

    return "\n".join(lines) + "\n"
