"""JSON encoding for stats, alerts, rules and full exports.

Keys are camelCase so dashboards written against the JSON export can
read fields such as summary.errorRate or operations.<op>.p95DurationMs.
"""

import json
from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from typing import Any

from perfwatch.core.models import (
    Alert,
    AlertRule,
    HealthStatus,
    OperationStats,
    Sample,
    Summary,
)


def stats_to_dict(stats: OperationStats) -> dict[str, Any]:
    return {
        "count": stats.count,
        "successCount": stats.success_count,
        "failureCount": stats.failure_count,
        "averageDurationMs": stats.average_duration_ms,
        "minDurationMs": stats.min_duration_ms,
        "maxDurationMs": stats.max_duration_ms,
        "p50DurationMs": stats.p50_duration_ms,
        "p95DurationMs": stats.p95_duration_ms,
        "p99DurationMs": stats.p99_duration_ms,
        "successRate": stats.success_rate,
        "errorRate": stats.error_rate,
        "throughputPerSec": stats.throughput_per_sec,
        "lastExecutedAtMs": stats.last_executed_at_ms,
    }


def alert_to_dict(alert: Alert) -> dict[str, Any]:
    return {
        "id": alert.id,
        "ruleId": alert.rule_id,
        "operation": alert.operation,
        "triggeredAtMs": alert.triggered_at_ms,
        "observedValue": alert.observed_value,
        "threshold": alert.threshold,
        "severity": alert.severity.value,
        "message": alert.message,
    }


def rule_to_dict(rule: AlertRule) -> dict[str, Any]:
    return {
        "id": rule.id,
        "operation": rule.operation,
        "metric": rule.metric.value,
        "threshold": rule.threshold,
        "comparison": rule.comparison.value,
        "timeWindowMs": rule.time_window_ms,
        "cooldownMs": rule.cooldown_ms,
        "enabled": rule.enabled,
    }


def sample_to_dict(sample: Sample) -> dict[str, Any]:
    obj: dict[str, Any] = {
        "operation": sample.operation,
        "durationMs": sample.duration_ms,
        "success": sample.success,
        "timestampMs": sample.timestamp_ms,
        "metadata": sample.metadata,
    }
    if sample.error is not None:
        obj["error"] = {
            "errorKind": sample.error.error_kind,
            "errorMessage": sample.error.error_message,
        }
    if sample.resource_delta is not None:
        obj["resourceDelta"] = {"memoryBytes": sample.resource_delta.memory_bytes}
    return obj


def summary_to_dict(summary: Summary) -> dict[str, Any]:
    return {
        "totalOperations": summary.total_operations,
        "totalRequests": summary.total_requests,
        "averageResponseTime": summary.average_response_time_ms,
        "errorRate": summary.error_rate,
        "slowestOperations": [
            {"operation": s.operation, "averageDuration": s.average_duration_ms}
            for s in summary.slowest_operations
        ],
        "alerts": [alert_to_dict(a) for a in summary.alerts],
    }


def health_to_dict(health: HealthStatus) -> dict[str, Any]:
    return {
        "healthy": health.healthy,
        "issues": list(health.issues),
        "criticalAlertCount": health.critical_alert_count,
        "averageResponseTime": health.average_response_time_ms,
        "errorRate": health.error_rate,
    }


def encode_export(
    summary: Summary,
    operations: Mapping[str, OperationStats],
    alerts: Iterable[Alert],
    timestamp_ms: int,
) -> str:
    """Encode a full monitoring snapshot as an indented JSON document.

    Args:
        summary: Summary for the default reporting window.
        operations: Stats per operation over all retained samples.
        alerts: All retained alerts, newest first.
        timestamp_ms: Export time, rendered as ISO 8601 UTC.
    """
    timestamp = datetime.fromtimestamp(timestamp_ms / 1000, tz=UTC)
    document = {
        "timestamp": timestamp.isoformat().replace("+00:00", "Z"),
        "summary": summary_to_dict(summary),
        "operations": {op: stats_to_dict(s) for op, s in operations.items()},
        "alerts": [alert_to_dict(a) for a in alerts],
    }
    return json.dumps(document, indent=2)
