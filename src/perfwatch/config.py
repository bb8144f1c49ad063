"""Configuration for PerformanceMonitor."""

from dataclasses import dataclass

MINUTE_MS = 60 * 1000
HOUR_MS = 60 * MINUTE_MS


@dataclass(frozen=True)
class MonitorConfig:
    """Tunable limits and policies of a PerformanceMonitor.

    Attributes:
        max_samples_per_operation: Per-operation sample cap; oldest samples
            are evicted first.
        retention_ms: Samples and alerts older than this are swept.
        cleanup_interval_ms: Period of the retention sweep thread.
        default_cooldown_ms: Cooldown of the built-in alert rules.
        default_window_ms: Evaluation window of the built-in alert rules.
        summary_window_ms: Window used by get_summary() and health checks.
        health_max_response_time_ms: Average response time above which the
            health status reports an issue.
        health_max_error_rate: Error rate above which the health status
            reports an issue.
        install_default_rules: Install the built-in alert rules on startup.
    """

    max_samples_per_operation: int = 1000
    retention_ms: int = 24 * HOUR_MS
    cleanup_interval_ms: int = 5 * MINUTE_MS
    default_cooldown_ms: int = 5 * MINUTE_MS
    default_window_ms: int = 5 * MINUTE_MS
    summary_window_ms: int = HOUR_MS
    health_max_response_time_ms: float = 5000.0
    health_max_error_rate: float = 0.05
    install_default_rules: bool = True

    def __post_init__(self) -> None:
        positive = {
            "max_samples_per_operation": self.max_samples_per_operation,
            "retention_ms": self.retention_ms,
            "cleanup_interval_ms": self.cleanup_interval_ms,
            "summary_window_ms": self.summary_window_ms,
        }
        for name, value in positive.items():
            if value <= 0:
                raise ValueError(f"{name} must be positive, got {value}")
        if self.default_cooldown_ms < 0 or self.default_window_ms < 0:
            raise ValueError("default rule window and cooldown must be >= 0")
        if not 0 <= self.health_max_error_rate <= 1:
            raise ValueError("health_max_error_rate must be between 0 and 1")
