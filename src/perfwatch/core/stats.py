"""Aggregation of samples into OperationStats."""

import math
from collections.abc import Sequence

from perfwatch.core.models import OperationStats, Sample


def percentile(sorted_values: Sequence[float], p: float) -> float:
    """Nearest-rank percentile of an ascending sequence.

    The rank is ceil(p / 100 * n), so p50 of [10, 20, ..., 100] is 50
    and p95 of the same list is 100.

    Args:
        sorted_values: Values sorted ascending.
        p: Percentile in [0, 100].

    Returns:
        The selected value, or 0.0 for an empty sequence.
    """
    n = len(sorted_values)
    if n == 0:
        return 0.0
    index = math.ceil(p / 100 * n) - 1
    return sorted_values[max(0, min(index, n - 1))]


def aggregate(samples: Sequence[Sample]) -> OperationStats | None:
    """Compute statistics for a slice of samples.

    Args:
        samples: Samples ordered by timestamp ascending.

    Returns:
        OperationStats, or None when there are no samples.
    """
    if not samples:
        return None

    count = len(samples)
    durations = sorted(s.duration_ms for s in samples)
    success_count = sum(1 for s in samples if s.success)
    failure_count = count - success_count

    first_ts = min(s.timestamp_ms for s in samples)
    last_ts = max(s.timestamp_ms for s in samples)
    # Samples sharing one timestamp still get a finite rate
    span_ms = max(1, last_ts - first_ts)

    return OperationStats(
        count=count,
        success_count=success_count,
        failure_count=failure_count,
        average_duration_ms=sum(durations) / count,
        min_duration_ms=durations[0],
        max_duration_ms=durations[-1],
        p50_duration_ms=percentile(durations, 50),
        p95_duration_ms=percentile(durations, 95),
        p99_duration_ms=percentile(durations, 99),
        success_rate=success_count / count,
        error_rate=failure_count / count,
        throughput_per_sec=count / span_ms * 1000,
        last_executed_at_ms=last_ts,
    )
