"""Core domain models for performance monitoring data."""

from dataclasses import dataclass, field
from enum import Enum

MetadataValue = str | int | float | bool

WILDCARD_OPERATION = "*"


class Metric(str, Enum):
    """Statistic an alert rule is evaluated against."""

    DURATION = "duration"
    SUCCESS_RATE = "successRate"
    ERROR_RATE = "errorRate"
    THROUGHPUT = "throughput"


class Comparison(str, Enum):
    """How an observed value is compared with a rule threshold."""

    GT = "gt"
    LT = "lt"
    EQ = "eq"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class RuleChange(str, Enum):
    ADDED = "added"
    REMOVED = "removed"


@dataclass(frozen=True)
class FailureInfo:
    """Why a tracked call failed.

    Attributes:
        error_kind: Exception class name (e.g., TimeoutError).
        error_message: String form of the exception.
    """

    error_kind: str
    error_message: str

    @classmethod
    def from_exception(cls, exc: BaseException) -> "FailureInfo":
        try:
            message = str(exc)
        except Exception:
            message = f"<unprintable {type(exc).__name__}>"
        return cls(error_kind=type(exc).__name__, error_message=message)


@dataclass(frozen=True)
class ResourceDelta:
    """Change in process resource usage across one tracked call."""

    memory_bytes: int


@dataclass(frozen=True)
class Sample:
    """One recorded execution of an operation.

    Attributes:
        operation: Operation name (e.g., db.query).
        duration_ms: Elapsed wall time in milliseconds.
        success: False when the call raised.
        timestamp_ms: Unix timestamp in milliseconds when the call started.
        metadata: Caller-supplied context.
        error: Failure details, present only when success is False.
        resource_delta: Resource usage change, absent when the probe failed.
    """

    operation: str
    duration_ms: float
    success: bool
    timestamp_ms: int
    metadata: dict[str, MetadataValue] = field(default_factory=dict)
    error: FailureInfo | None = None
    resource_delta: ResourceDelta | None = None


@dataclass(frozen=True)
class OperationStats:
    """Aggregated statistics over a window of samples."""

    count: int
    success_count: int
    failure_count: int
    average_duration_ms: float
    min_duration_ms: float
    max_duration_ms: float
    p50_duration_ms: float
    p95_duration_ms: float
    p99_duration_ms: float
    success_rate: float
    error_rate: float
    throughput_per_sec: float
    last_executed_at_ms: int


@dataclass(frozen=True)
class AlertRule:
    """A threshold condition on an operation's statistics.

    Attributes:
        id: Unique rule identifier.
        operation: Operation name, or "*" for every operation.
        metric: Statistic to compare.
        threshold: Value the statistic is compared against.
        comparison: gt, lt or eq (eq tolerates a difference below 1e-3).
        time_window_ms: Trailing window of samples used for evaluation.
            Zero means all retained samples.
        cooldown_ms: Minimum spacing between two alerts from this rule.
        enabled: Disabled rules are never evaluated.
    """

    id: str
    operation: str
    metric: Metric
    threshold: float
    comparison: Comparison
    time_window_ms: int = 5 * 60 * 1000
    cooldown_ms: int = 5 * 60 * 1000
    enabled: bool = True

    def applies_to(self, operation: str) -> bool:
        return self.operation in (operation, WILDCARD_OPERATION)


@dataclass(frozen=True)
class Alert:
    """A single firing of an alert rule."""

    id: str
    rule_id: str
    operation: str
    triggered_at_ms: int
    observed_value: float
    threshold: float
    severity: Severity
    message: str


@dataclass(frozen=True)
class SlowOperation:
    operation: str
    average_duration_ms: float


@dataclass(frozen=True)
class Summary:
    """Cross-operation overview for a trailing window."""

    total_operations: int
    total_requests: int
    average_response_time_ms: float
    error_rate: float
    slowest_operations: list[SlowOperation] = field(default_factory=list)
    alerts: list[Alert] = field(default_factory=list)


@dataclass(frozen=True)
class HealthStatus:
    healthy: bool
    issues: list[str]
    critical_alert_count: int
    average_response_time_ms: float
    error_rate: float
