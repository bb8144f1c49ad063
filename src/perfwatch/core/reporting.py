"""Read-only summaries over recorded samples and fired alerts."""

from collections.abc import Iterable, Mapping

from perfwatch.core.models import (
    Alert,
    HealthStatus,
    OperationStats,
    Severity,
    SlowOperation,
    Summary,
)
from perfwatch.core.ports import SampleStorePort
from perfwatch.core.stats import aggregate

SLOWEST_OPERATIONS_LIMIT = 5


def collect_stats(
    store: SampleStorePort, operation: str, window_ms: int | None, now_ms: int
) -> OperationStats | None:
    return aggregate(store.query(operation, window_ms, now_ms))


def collect_all_stats(
    store: SampleStorePort, window_ms: int | None, now_ms: int
) -> dict[str, OperationStats]:
    """Stats for every operation that has samples inside the window."""
    result: dict[str, OperationStats] = {}
    for operation in store.operations():
        stats = collect_stats(store, operation, window_ms, now_ms)
        if stats is not None:
            result[operation] = stats
    return result


def summarize(
    stats_by_operation: Mapping[str, OperationStats],
    alerts: Iterable[Alert],
    window_ms: int,
    now_ms: int,
) -> Summary:
    """Build a cross-operation summary.

    The average response time is weighted by request count, so busy
    operations dominate it. Only alerts fired within the window are kept;
    a window of 0 keeps every alert, matching the all-samples stats.
    """
    total_requests = sum(s.count for s in stats_by_operation.values())
    total_duration = sum(
        s.average_duration_ms * s.count for s in stats_by_operation.values()
    )
    total_errors = sum(s.failure_count for s in stats_by_operation.values())

    slowest = sorted(
        (
            SlowOperation(operation=op, average_duration_ms=s.average_duration_ms)
            for op, s in stats_by_operation.items()
        ),
        key=lambda so: so.average_duration_ms,
        reverse=True,
    )[:SLOWEST_OPERATIONS_LIMIT]

    if window_ms:
        recent_alerts = [a for a in alerts if now_ms - a.triggered_at_ms < window_ms]
    else:
        recent_alerts = list(alerts)

    return Summary(
        total_operations=len(stats_by_operation),
        total_requests=total_requests,
        average_response_time_ms=(
            total_duration / total_requests if total_requests else 0.0
        ),
        error_rate=total_errors / total_requests if total_requests else 0.0,
        slowest_operations=slowest,
        alerts=recent_alerts,
    )


def health_status(
    summary: Summary, max_response_time_ms: float, max_error_rate: float
) -> HealthStatus:
    """Apply the global health policy to a summary.

    This policy is fixed and independent of user-defined alert rules.
    """
    critical = sum(1 for a in summary.alerts if a.severity is Severity.CRITICAL)
    issues: list[str] = []

    if summary.average_response_time_ms > max_response_time_ms:
        issues.append("High average response time")
    if summary.error_rate > max_error_rate:
        issues.append("High error rate")
    if critical > 0:
        issues.append(f"{critical} critical alerts")

    return HealthStatus(
        healthy=not issues,
        issues=issues,
        critical_alert_count=critical,
        average_response_time_ms=summary.average_response_time_ms,
        error_rate=summary.error_rate,
    )
