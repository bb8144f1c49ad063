"""perfwatch: in-process performance monitoring and alerting."""

from perfwatch.adapters.logging import LoggingObserver
from perfwatch.adapters.storage import InMemoryAlertStore, RingBufferSampleStore
from perfwatch.config import MonitorConfig
from perfwatch.core.exceptions import (
    DuplicateAlertRuleError,
    InvalidAlertRuleError,
    PerfwatchError,
    UnsupportedFormatError,
)
from perfwatch.core.models import (
    Alert,
    AlertRule,
    Comparison,
    FailureInfo,
    HealthStatus,
    Metric,
    OperationStats,
    ResourceDelta,
    RuleChange,
    Sample,
    Severity,
    Summary,
)
from perfwatch.core.ports import AlertObserver, MetricObserver, RuleObserver
from perfwatch.core.samples import failure, success
from perfwatch.monitor import PerformanceMonitor

__all__ = [
    "Alert",
    "AlertObserver",
    "AlertRule",
    "Comparison",
    "DuplicateAlertRuleError",
    "FailureInfo",
    "HealthStatus",
    "InMemoryAlertStore",
    "InvalidAlertRuleError",
    "LoggingObserver",
    "Metric",
    "MetricObserver",
    "MonitorConfig",
    "OperationStats",
    "PerformanceMonitor",
    "PerfwatchError",
    "ResourceDelta",
    "RingBufferSampleStore",
    "RuleChange",
    "RuleObserver",
    "Sample",
    "Severity",
    "Summary",
    "UnsupportedFormatError",
    "failure",
    "success",
]
