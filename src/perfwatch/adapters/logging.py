"""Python logging observer adapter for perfwatch.

This adapter forwards recorded samples and fired alerts to a standard
library logger, so the hosting application's log pipeline receives them
without depending on perfwatch types.
"""

import logging
from typing import Any

from perfwatch.core.models import Alert, AlertRule, RuleChange, Sample, Severity

_SEVERITY_LEVELS = {
    Severity.LOW: logging.INFO,
    Severity.MEDIUM: logging.WARNING,
    Severity.HIGH: logging.WARNING,
    Severity.CRITICAL: logging.ERROR,
}


class LoggingObserver:
    """Observer that writes samples and alerts to a logging.Logger.

    Implements MetricObserver, AlertObserver and RuleObserver.

    Example:
        ```python
        from perfwatch import LoggingObserver, PerformanceMonitor

        monitor = PerformanceMonitor()
        monitor.subscribe(LoggingObserver(logging.getLogger("app.perf")))
        ```
    """

    def __init__(
        self,
        logger: logging.Logger | None = None,
        metric_level: int = logging.DEBUG,
        log_metrics: bool = True,
    ) -> None:
        """Initialize the observer.

        Args:
            logger: Destination logger. Defaults to the "perfwatch.events"
                logger.
            metric_level: Level used for recorded samples.
            log_metrics: Set False to forward alerts only.
        """
        self._logger = logger or logging.getLogger("perfwatch.events")
        self._metric_level = metric_level
        self._log_metrics = log_metrics

    def notify_metric(self, sample: Sample) -> None:
        if not self._log_metrics or not self._logger.isEnabledFor(self._metric_level):
            return
        extra: dict[str, Any] = {
            "operation": sample.operation,
            "duration_ms": sample.duration_ms,
            "success": sample.success,
        }
        if sample.error is not None:
            extra["exc_type"] = sample.error.error_kind
            extra["exc_message"] = sample.error.error_message
        self._logger.log(
            self._metric_level,
            "%s took %.2fms (%s)",
            sample.operation,
            sample.duration_ms,
            "ok" if sample.success else "failed",
            extra=extra,
        )

    def notify_alert(self, alert: Alert) -> None:
        self._logger.log(
            _SEVERITY_LEVELS[alert.severity],
            alert.message,
            extra={
                "alert_id": alert.id,
                "rule_id": alert.rule_id,
                "operation": alert.operation,
                "severity": alert.severity.value,
                "observed_value": alert.observed_value,
                "threshold": alert.threshold,
            },
        )

    def notify_rule_change(self, change: RuleChange, rule: AlertRule) -> None:
        self._logger.info(
            "Alert rule %s: %s",
            change.value,
            rule.id,
            extra={"rule_id": rule.id, "operation": rule.operation},
        )
