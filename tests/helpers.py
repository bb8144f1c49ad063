"""Test doubles and builders shared across test modules."""

from perfwatch.core.models import Alert, AlertRule, RuleChange, Sample, Severity

START_MS = 1_702_300_000_000


class FakeClock:
    """Deterministic epoch-millisecond clock."""

    def __init__(self, now: int = START_MS) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class RecordingObserver:
    """Observer that keeps every event it receives."""

    def __init__(self) -> None:
        self.samples: list[Sample] = []
        self.alerts: list[Alert] = []
        self.rule_changes: list[tuple[RuleChange, str]] = []

    def notify_metric(self, sample: Sample) -> None:
        self.samples.append(sample)

    def notify_alert(self, alert: Alert) -> None:
        self.alerts.append(alert)

    def notify_rule_change(self, change: RuleChange, rule: AlertRule) -> None:
        self.rule_changes.append((change, rule.id))


def make_sample(
    operation: str = "db.query",
    duration_ms: float = 10.0,
    success: bool = True,
    timestamp_ms: int = START_MS,
) -> Sample:
    return Sample(
        operation=operation,
        duration_ms=duration_ms,
        success=success,
        timestamp_ms=timestamp_ms,
    )


def make_alert(
    operation: str = "db.query",
    triggered_at_ms: int = START_MS,
    severity: Severity = Severity.LOW,
    rule_id: str = "slow",
) -> Alert:
    return Alert(
        id=f"{rule_id}_{triggered_at_ms}",
        rule_id=rule_id,
        operation=operation,
        triggered_at_ms=triggered_at_ms,
        observed_value=150.0,
        threshold=100.0,
        severity=severity,
        message=f'Operation "{operation}" duration (150.00) gt threshold (100)',
    )
