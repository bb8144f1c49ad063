"""Alert rule validation, evaluation and cooldown tracking."""

import logging
import math
import threading
from collections.abc import Callable, Mapping
from typing import Any

from perfwatch.core.exceptions import DuplicateAlertRuleError, InvalidAlertRuleError
from perfwatch.core.models import (
    WILDCARD_OPERATION,
    Alert,
    AlertRule,
    Comparison,
    Metric,
    OperationStats,
    Severity,
)
from perfwatch.core.ports import AlertStorePort, SampleStorePort
from perfwatch.core.stats import aggregate

logger = logging.getLogger(__name__)

EQ_TOLERANCE = 1e-3


def default_rules(window_ms: int, cooldown_ms: int) -> list[AlertRule]:
    """Built-in rules applied to every operation."""
    return [
        AlertRule(
            id="high_response_time",
            operation=WILDCARD_OPERATION,
            metric=Metric.DURATION,
            threshold=5000,
            comparison=Comparison.GT,
            time_window_ms=window_ms,
            cooldown_ms=cooldown_ms,
        ),
        AlertRule(
            id="high_error_rate",
            operation=WILDCARD_OPERATION,
            metric=Metric.ERROR_RATE,
            threshold=0.1,
            comparison=Comparison.GT,
            time_window_ms=window_ms,
            cooldown_ms=cooldown_ms,
        ),
        AlertRule(
            id="low_success_rate",
            operation=WILDCARD_OPERATION,
            metric=Metric.SUCCESS_RATE,
            threshold=0.9,
            comparison=Comparison.LT,
            time_window_ms=window_ms,
            cooldown_ms=cooldown_ms,
        ),
    ]


def validate_rule(rule: AlertRule) -> None:
    """Reject rule definitions that cannot be evaluated meaningfully.

    Raises:
        InvalidAlertRuleError: If any field is out of range.
    """
    if not rule.id:
        raise InvalidAlertRuleError("rule id must not be empty")
    if not rule.operation:
        raise InvalidAlertRuleError(f"rule {rule.id!r}: operation must not be empty")
    if not isinstance(rule.metric, Metric):
        raise InvalidAlertRuleError(f"rule {rule.id!r}: unknown metric {rule.metric!r}")
    if not isinstance(rule.comparison, Comparison):
        raise InvalidAlertRuleError(
            f"rule {rule.id!r}: unknown comparison {rule.comparison!r}"
        )
    if not math.isfinite(rule.threshold):
        raise InvalidAlertRuleError(f"rule {rule.id!r}: threshold must be finite")
    if rule.comparison is Comparison.EQ and rule.threshold == 0:
        raise InvalidAlertRuleError(
            f"rule {rule.id!r}: eq comparison needs a non-zero threshold"
        )
    if rule.time_window_ms < 0:
        raise InvalidAlertRuleError(f"rule {rule.id!r}: time_window_ms must be >= 0")
    if rule.cooldown_ms < 0:
        raise InvalidAlertRuleError(f"rule {rule.id!r}: cooldown_ms must be >= 0")


def _duration_field(data: Mapping[str, Any], key: str) -> int:
    value = data.get(key, 5 * 60 * 1000)
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise InvalidAlertRuleError(f"{key} must be a number of milliseconds")
    if not float(value).is_integer():
        raise InvalidAlertRuleError(f"{key} must be a whole number of milliseconds")
    return int(value)


def _enabled_field(data: Mapping[str, Any]) -> bool:
    value = data.get("enabled", True)
    if not isinstance(value, bool):
        raise InvalidAlertRuleError("enabled must be true or false")
    return value


def alert_rule_from_dict(data: Mapping[str, Any]) -> AlertRule:
    """Build an AlertRule from its JSON representation (camelCase keys).

    Raises:
        InvalidAlertRuleError: If a key is missing or has the wrong type,
            including a non-boolean enabled flag or a fractional window.
    """
    try:
        return AlertRule(
            id=str(data["id"]),
            operation=str(data["operation"]),
            metric=Metric(data["metric"]),
            threshold=float(data["threshold"]),
            comparison=Comparison(data["comparison"]),
            time_window_ms=_duration_field(data, "timeWindowMs"),
            cooldown_ms=_duration_field(data, "cooldownMs"),
            enabled=_enabled_field(data),
        )
    except KeyError as e:
        raise InvalidAlertRuleError(f"missing field {e.args[0]!r}") from e
    except (TypeError, ValueError) as e:
        raise InvalidAlertRuleError(str(e)) from e


def metric_value(stats: OperationStats, metric: Metric) -> float:
    """Read the statistic a rule metric refers to."""
    if metric is Metric.DURATION:
        return stats.average_duration_ms
    if metric is Metric.SUCCESS_RATE:
        return stats.success_rate
    if metric is Metric.ERROR_RATE:
        return stats.error_rate
    return stats.throughput_per_sec


def compare(value: float, comparison: Comparison, threshold: float) -> bool:
    if comparison is Comparison.GT:
        return value > threshold
    if comparison is Comparison.LT:
        return value < threshold
    return abs(value - threshold) < EQ_TOLERANCE


def severity_for(value: float, threshold: float) -> Severity:
    """Map the relative deviation from the threshold to a severity.

    With a zero threshold any non-zero value is an unbounded deviation
    and is critical; an exact zero is low.
    """
    if threshold == 0:
        deviation = math.inf if value != 0 else 0.0
    else:
        deviation = abs(value - threshold) / abs(threshold)

    if deviation > 1:
        return Severity.CRITICAL
    if deviation > 0.5:
        return Severity.HIGH
    if deviation > 0.2:
        return Severity.MEDIUM
    return Severity.LOW


def alert_message(rule: AlertRule, operation: str, value: float) -> str:
    return (
        f'Operation "{operation}" {rule.metric.value} ({value:.2f}) '
        f"{rule.comparison.value} threshold ({rule.threshold:g})"
    )


class AlertRuleEngine:
    """Holds alert rules and fires rate-limited alerts on new samples.

    Each rule is either idle or cooling down. A rule fires when its
    comparison holds and at least cooldown_ms has passed since it last
    fired; firing is the only transition.
    """

    def __init__(
        self,
        sample_store: SampleStorePort,
        alert_store: AlertStorePort,
        clock: Callable[[], int],
    ) -> None:
        self._samples = sample_store
        self._alerts = alert_store
        self._clock = clock
        self._rules: dict[str, AlertRule] = {}
        self._last_fired: dict[str, int] = {}
        self._lock = threading.Lock()

    def add_rule(self, rule: AlertRule) -> None:
        """Register a rule.

        Raises:
            InvalidAlertRuleError: If the rule fails validation.
            DuplicateAlertRuleError: If a rule with the same id exists.
        """
        validate_rule(rule)
        with self._lock:
            if rule.id in self._rules:
                raise DuplicateAlertRuleError(rule.id)
            self._rules[rule.id] = rule
        logger.debug("Alert rule added: %s", rule.id)

    def remove_rule(self, rule_id: str) -> bool:
        return self.pop_rule(rule_id) is not None

    def pop_rule(self, rule_id: str) -> AlertRule | None:
        """Unregister a rule and forget its cooldown state.

        Returns:
            The removed rule, or None when the id is unknown.
        """
        with self._lock:
            removed = self._rules.pop(rule_id, None)
            self._last_fired.pop(rule_id, None)
        if removed is not None:
            logger.debug("Alert rule removed: %s", rule_id)
        return removed

    def has_rule(self, rule_id: str) -> bool:
        with self._lock:
            return rule_id in self._rules

    def list_rules(self) -> list[AlertRule]:
        with self._lock:
            return list(self._rules.values())

    def rules_for(self, operation: str) -> list[AlertRule]:
        """Enabled rules bound to the operation or to the wildcard."""
        with self._lock:
            return [
                r for r in self._rules.values() if r.enabled and r.applies_to(operation)
            ]

    def on_sample_recorded(self, operation: str) -> list[Alert]:
        """Evaluate every applicable rule for an operation.

        Returns:
            Alerts fired by this evaluation pass.
        """
        fired: list[Alert] = []
        for rule in self.rules_for(operation):
            alert = self.evaluate(rule, operation)
            if alert is not None:
                fired.append(alert)
        return fired

    def evaluate(self, rule: AlertRule, operation: str) -> Alert | None:
        """Evaluate one rule against fresh stats for an operation.

        Returns:
            The fired Alert, or None when the rule did not fire.
        """
        now = self._clock()
        samples = self._samples.query(operation, rule.time_window_ms or None, now)
        stats = aggregate(samples)
        if stats is None:
            return None

        value = metric_value(stats, rule.metric)
        if not compare(value, rule.comparison, rule.threshold):
            return None

        with self._lock:
            if rule.id not in self._rules:
                return None
            last = self._last_fired.get(rule.id)
            if last is not None and now - last < rule.cooldown_ms:
                return None
            self._last_fired[rule.id] = now

        alert = Alert(
            id=f"{rule.id}_{now}",
            rule_id=rule.id,
            operation=operation,
            triggered_at_ms=now,
            observed_value=value,
            threshold=rule.threshold,
            severity=severity_for(value, rule.threshold),
            message=alert_message(rule, operation, value),
        )
        self._alerts.append(alert)
        logger.warning(
            "Performance alert: %s",
            alert.message,
            extra={
                "alert_id": alert.id,
                "rule_id": rule.id,
                "operation": operation,
                "severity": alert.severity.value,
            },
        )
        return alert
