"""Step definitions for alerting features."""

from dataclasses import dataclass, field

import pytest
from pytest_bdd import given, parsers, then, when

from perfwatch.config import MonitorConfig
from perfwatch.core.models import Alert, AlertRule, Comparison, Metric
from perfwatch.monitor import PerformanceMonitor
from tests.helpers import FakeClock, make_sample


@dataclass
class AlertingScenarioContext:
    clock: FakeClock = field(default_factory=FakeClock)
    monitor: PerformanceMonitor | None = None
    fired: list[Alert] = field(default_factory=list)

    def notify_alert(self, alert: Alert) -> None:
        self.fired.append(alert)


@pytest.fixture
def ctx() -> AlertingScenarioContext:
    """Fresh scenario context for each test."""
    return AlertingScenarioContext()


@given("a monitor without default rules")
def step_monitor(ctx: AlertingScenarioContext) -> None:
    ctx.monitor = PerformanceMonitor(
        MonitorConfig(install_default_rules=False),
        clock=ctx.clock,
        track_resources=False,
    )
    ctx.monitor.subscribe(ctx)


@given(
    parsers.parse(
        'a rule "{rule_id}" on "{operation}" with {metric} {comparison} '
        "{threshold:g} and cooldown {cooldown:d}ms"
    )
)
def step_rule(
    ctx: AlertingScenarioContext,
    rule_id: str,
    operation: str,
    metric: str,
    comparison: str,
    threshold: float,
    cooldown: int,
) -> None:
    ctx.monitor.add_alert_rule(
        AlertRule(
            id=rule_id,
            operation=operation,
            metric=Metric(metric),
            threshold=threshold,
            comparison=Comparison(comparison),
            cooldown_ms=cooldown,
        )
    )


@when(parsers.parse('a "{operation}" sample of {duration:g}ms is recorded'))
def when_sample_recorded(
    ctx: AlertingScenarioContext, operation: str, duration: float
) -> None:
    ctx.monitor.record_metric(
        make_sample(operation, duration_ms=duration, timestamp_ms=ctx.clock())
    )


@when(parsers.parse("the clock advances {ms:d}ms"))
def when_clock_advances(ctx: AlertingScenarioContext, ms: int) -> None:
    ctx.clock.advance(ms)


@then(parsers.parse('{n:d} alert has fired for "{rule_id}"'))
@then(parsers.parse('{n:d} alerts have fired for "{rule_id}"'))
def then_alerts_fired(ctx: AlertingScenarioContext, n: int, rule_id: str) -> None:
    fired = [a for a in ctx.fired if a.rule_id == rule_id]
    assert len(fired) == n
    assert len([a for a in ctx.monitor.get_alerts() if a.rule_id == rule_id]) == n
