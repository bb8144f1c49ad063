"""Tests for the PerformanceMonitor facade."""

import asyncio
import json

import pytest

from perfwatch.config import MonitorConfig
from perfwatch.core.exceptions import (
    DuplicateAlertRuleError,
    InvalidAlertRuleError,
    UnsupportedFormatError,
)
from perfwatch.adapters.storage.ring_buffer import RingBufferSampleStore
from perfwatch.core.models import (
    AlertRule,
    Comparison,
    Metric,
    ResourceDelta,
    RuleChange,
)
from perfwatch.monitor import PerformanceMonitor
from tests.helpers import FakeClock, RecordingObserver, make_sample

HOUR_MS = 60 * 60 * 1000


class QueryFailed(Exception):
    pass


class StepProbe:
    """ResourceProbe that grows by a fixed step on every read."""

    def __init__(self, step: int) -> None:
        self.value = 0
        self.step = step

    def memory_bytes(self) -> int:
        self.value += self.step
        return self.value


class BrokenProbe:
    def memory_bytes(self) -> int:
        raise OSError("probe unavailable")


class UnprintableError(Exception):
    def __str__(self) -> str:
        raise RuntimeError("str broken")


class RejectingStore(RingBufferSampleStore):
    """Sample store whose writes always fail."""

    def record(self, sample) -> None:
        raise OSError("store unavailable")


class RuleLog:
    """Observer interested in rule changes only."""

    def __init__(self) -> None:
        self.changes: list[RuleChange] = []

    def notify_rule_change(self, change: RuleChange, rule: AlertRule) -> None:
        self.changes.append(change)


def monitor_with_rejecting_store(clock: FakeClock) -> PerformanceMonitor:
    return PerformanceMonitor(
        MonitorConfig(install_default_rules=False),
        clock=clock,
        sample_store=RejectingStore(),
        track_resources=False,
    )


def slow_rule(**overrides) -> AlertRule:
    fields = {
        "id": "slow",
        "operation": "db.query",
        "metric": Metric.DURATION,
        "threshold": 100.0,
        "comparison": Comparison.GT,
        "time_window_ms": 60_000,
        "cooldown_ms": 1000,
    }
    fields.update(overrides)
    return AlertRule(**fields)


class TestConstruction:
    @pytest.mark.core
    def test_default_rules_installed(self, monitor_with_defaults) -> None:
        ids = [r.id for r in monitor_with_defaults.get_alert_rules()]
        assert ids == ["high_response_time", "high_error_rate", "low_success_rate"]

    @pytest.mark.core
    def test_default_rules_use_config(self, clock: FakeClock) -> None:
        config = MonitorConfig(default_window_ms=1000, default_cooldown_ms=2000)
        monitor = PerformanceMonitor(config, clock=clock, track_resources=False)
        rule = monitor.get_alert_rules()[0]
        assert rule.time_window_ms == 1000
        assert rule.cooldown_ms == 2000

    @pytest.mark.core
    def test_default_rules_skipped_when_disabled(self, monitor) -> None:
        assert monitor.get_alert_rules() == []

    @pytest.mark.core
    def test_sample_cap_from_config(self, clock: FakeClock) -> None:
        monitor = PerformanceMonitor(
            MonitorConfig(max_samples_per_operation=5, install_default_rules=False),
            clock=clock,
            track_resources=False,
        )
        for i in range(8):
            monitor.record_metric(make_sample(timestamp_ms=clock() + i))
        assert monitor.get_stats("db.query").count == 5

    @pytest.mark.core
    def test_context_manager_starts_and_stops_retention(self, clock) -> None:
        with PerformanceMonitor(clock=clock, track_resources=False) as monitor:
            assert monitor._retention.running
        assert not monitor._retention.running


class TestTrack:
    """Tests for track(), track_async(), timer() and start_timing()."""

    @pytest.mark.core
    def test_track_returns_result_and_records_success(self, monitor, clock) -> None:
        result = monitor.track("add", lambda a, b: a + b, 2, 3, metadata={"k": "v"})

        assert result == 5
        stats = monitor.get_stats("add")
        assert stats.count == 1
        assert stats.success_count == 1
        assert stats.last_executed_at_ms == clock()

    @pytest.mark.core
    def test_track_reraises_and_records_failure(self, monitor, observer) -> None:
        error = QueryFailed("connection reset")
        monitor.subscribe(observer)

        def failing() -> None:
            raise error

        with pytest.raises(QueryFailed) as exc_info:
            monitor.track("db.query", failing, metadata={"table": "users"})

        assert exc_info.value is error
        assert monitor.get_stats("db.query").failure_count == 1
        sample = observer.samples[0]
        assert sample.success is False
        assert sample.error.error_kind == "QueryFailed"
        assert sample.error.error_message == "connection reset"
        assert sample.metadata == {"table": "users"}
        assert sample.resource_delta is None

    @pytest.mark.core
    def test_track_records_resource_delta(self, clock, observer) -> None:
        monitor = PerformanceMonitor(
            MonitorConfig(install_default_rules=False),
            clock=clock,
            resource_probe=StepProbe(step=512),
        )
        monitor.subscribe(observer)

        monitor.track("alloc", lambda: None)

        assert observer.samples[0].resource_delta == ResourceDelta(memory_bytes=512)

    @pytest.mark.core
    def test_broken_probe_degrades_to_no_delta(self, clock, observer) -> None:
        monitor = PerformanceMonitor(
            MonitorConfig(install_default_rules=False),
            clock=clock,
            resource_probe=BrokenProbe(),
        )
        monitor.subscribe(observer)

        assert monitor.track("op", lambda: "ok") == "ok"
        assert observer.samples[0].resource_delta is None

    @pytest.mark.core
    async def test_track_async_success(self, monitor) -> None:
        async def fetch(value: int) -> int:
            await asyncio.sleep(0)
            return value * 2

        assert await monitor.track_async("fetch", fetch, 21) == 42
        assert monitor.get_stats("fetch").success_count == 1

    @pytest.mark.core
    async def test_track_async_failure(self, monitor) -> None:
        async def fetch() -> None:
            raise QueryFailed("nope")

        with pytest.raises(QueryFailed, match="nope"):
            await monitor.track_async("fetch", fetch)
        assert monitor.get_stats("fetch").failure_count == 1

    @pytest.mark.core
    async def test_cancelled_call_is_recorded(self, monitor, observer) -> None:
        monitor.subscribe(observer)
        started = asyncio.Event()

        async def hang() -> None:
            started.set()
            await asyncio.sleep(60)

        task = asyncio.create_task(monitor.track_async("hang", hang))
        await started.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert observer.samples[0].success is False
        assert observer.samples[0].error.error_kind == "CancelledError"

    @pytest.mark.core
    def test_timer_records_block(self, monitor) -> None:
        with monitor.timer("render", metadata={"template": "home"}) as timed:
            pass

        assert timed.sample is not None
        assert timed.sample.success
        assert timed.sample.metadata == {"template": "home"}
        assert monitor.get_stats("render").count == 1

    @pytest.mark.core
    def test_timer_records_failure_and_reraises(self, monitor) -> None:
        with pytest.raises(KeyError):
            with monitor.timer("render") as timed:
                raise KeyError("missing")

        assert timed.sample.success is False
        assert monitor.get_stats("render").failure_count == 1

    @pytest.mark.core
    def test_start_timing_records_once(self, monitor) -> None:
        stop = monitor.start_timing("upload")

        stop()
        stop()

        assert monitor.get_stats("upload").count == 1

    @pytest.mark.core
    def test_unprintable_exception_reaches_caller(self, monitor, observer) -> None:
        monitor.subscribe(observer)

        def failing() -> None:
            raise UnprintableError()

        with pytest.raises(UnprintableError):
            monitor.track("db.query", failing)

        error = observer.samples[0].error
        assert error.error_kind == "UnprintableError"
        assert error.error_message == "<unprintable UnprintableError>"

    @pytest.mark.core
    def test_store_failure_keeps_result_and_exception(
        self, clock, caplog: pytest.LogCaptureFixture
    ) -> None:
        monitor = monitor_with_rejecting_store(clock)

        def failing() -> None:
            raise QueryFailed("connection reset")

        assert monitor.track("op", lambda: "ok") == "ok"
        with pytest.raises(QueryFailed, match="connection reset"):
            monitor.track("op", failing)
        with pytest.raises(KeyError):
            with monitor.timer("op"):
                raise KeyError("missing")
        monitor.start_timing("op")()

        assert "Failed to store sample for op" in caplog.text
        assert monitor.get_all_stats() == {}

    @pytest.mark.core
    async def test_store_failure_keeps_async_result(self, clock) -> None:
        monitor = monitor_with_rejecting_store(clock)

        async def fetch() -> int:
            return 7

        assert await monitor.track_async("fetch", fetch) == 7

    @pytest.mark.core
    def test_rejected_sample_is_not_published(self, clock, observer) -> None:
        monitor = monitor_with_rejecting_store(clock)
        monitor.subscribe(observer)

        monitor.record_metric(make_sample())

        assert observer.samples == []


class TestRecordMetric:
    """Tests for record_metric() and alert firing through the facade."""

    @pytest.mark.core
    def test_fifo_cap(self, monitor, clock) -> None:
        for i in range(1001):
            monitor.record_metric(make_sample(timestamp_ms=clock() + i))

        stats = monitor.get_stats("db.query")
        assert stats.count == 1000

    @pytest.mark.core
    def test_cooldown_through_facade(self, monitor, clock, observer) -> None:
        monitor.add_alert_rule(slow_rule(cooldown_ms=1000))
        monitor.subscribe(observer)
        start = clock()

        for offset in (0, 0, 1):
            clock.now = start + offset
            monitor.record_metric(make_sample(duration_ms=150.0, timestamp_ms=clock()))
        assert len(observer.alerts) == 1

        for offset in (10, 500, 999):
            clock.now = start + offset
            monitor.record_metric(make_sample(duration_ms=150.0, timestamp_ms=clock()))
        assert len(observer.alerts) == 1

        clock.now = start + 1001
        monitor.record_metric(make_sample(duration_ms=150.0, timestamp_ms=clock()))
        assert len(observer.alerts) == 2

    @pytest.mark.core
    def test_alert_published_before_metric(self, monitor, clock) -> None:
        events: list[str] = []

        class Ordered:
            def notify_metric(self, sample) -> None:
                events.append("metric")

            def notify_alert(self, alert) -> None:
                events.append("alert")

        monitor.add_alert_rule(slow_rule())
        monitor.subscribe(Ordered())
        monitor.record_metric(make_sample(duration_ms=150.0, timestamp_ms=clock()))

        assert events == ["alert", "metric"]

    @pytest.mark.core
    def test_failing_observer_does_not_break_recording(
        self, monitor, observer, caplog
    ) -> None:
        class Exploding:
            def notify_metric(self, sample) -> None:
                raise RuntimeError("observer bug")

        monitor.subscribe(Exploding())
        monitor.subscribe(observer)

        monitor.record_metric(make_sample())

        assert len(observer.samples) == 1
        assert "Metric observer" in caplog.text

    @pytest.mark.core
    def test_unsubscribe(self, monitor, observer) -> None:
        unsubscribe = monitor.subscribe(observer)
        monitor.record_metric(make_sample())
        unsubscribe()
        monitor.record_metric(make_sample())

        assert len(observer.samples) == 1

    @pytest.mark.core
    def test_late_subscriber_misses_past_events(self, monitor) -> None:
        monitor.record_metric(make_sample())
        late = RecordingObserver()
        monitor.subscribe(late)

        assert late.samples == []

    @pytest.mark.core
    def test_subscribe_rejects_non_observer(self, monitor) -> None:
        with pytest.raises(TypeError, match="notify_metric"):
            monitor.subscribe(object())


class TestAlertRules:
    @pytest.mark.core
    def test_add_remove_rule(self, monitor) -> None:
        monitor.add_alert_rule(slow_rule())
        assert [r.id for r in monitor.get_alert_rules()] == ["slow"]
        assert monitor.remove_alert_rule("slow") is True
        assert monitor.remove_alert_rule("slow") is False

    @pytest.mark.core
    def test_rule_changes_published(self, monitor, observer) -> None:
        monitor.subscribe(observer)

        monitor.add_alert_rule(slow_rule())
        with pytest.raises(DuplicateAlertRuleError):
            monitor.add_alert_rule(slow_rule())
        monitor.remove_alert_rule("slow")
        monitor.remove_alert_rule("slow")

        assert observer.rule_changes == [
            (RuleChange.ADDED, "slow"),
            (RuleChange.REMOVED, "slow"),
        ]

    @pytest.mark.core
    def test_rule_only_observer(self, monitor) -> None:
        rule_log = RuleLog()
        unsubscribe = monitor.subscribe(rule_log)

        monitor.add_alert_rule(slow_rule())
        unsubscribe()
        monitor.remove_alert_rule("slow")

        assert rule_log.changes == [RuleChange.ADDED]

    @pytest.mark.core
    def test_duplicate_rejected(self, monitor_with_defaults) -> None:
        with pytest.raises(DuplicateAlertRuleError):
            monitor_with_defaults.add_alert_rule(slow_rule(id="high_error_rate"))

    @pytest.mark.core
    def test_invalid_rejected(self, monitor) -> None:
        with pytest.raises(InvalidAlertRuleError):
            monitor.add_alert_rule(slow_rule(cooldown_ms=-5))

    @pytest.mark.core
    def test_alerts_newest_first_and_clear(self, monitor, clock) -> None:
        monitor.add_alert_rule(slow_rule(operation="*", cooldown_ms=0))
        monitor.record_metric(
            make_sample(operation="a", duration_ms=150.0, timestamp_ms=clock())
        )
        clock.advance(10)
        monitor.record_metric(
            make_sample(operation="b", duration_ms=150.0, timestamp_ms=clock())
        )

        assert [a.operation for a in monitor.get_alerts()] == ["b", "a"]
        assert [a.operation for a in monitor.get_alerts("a")] == ["a"]

        monitor.clear_alerts("a")
        assert [a.operation for a in monitor.get_alerts()] == ["b"]
        monitor.clear_alerts()
        assert monitor.get_alerts() == []


class TestReporting:
    @pytest.mark.core
    def test_get_stats_absent_operation(self, monitor) -> None:
        assert monitor.get_stats("nothing") is None

    @pytest.mark.core
    def test_get_all_stats_window(self, monitor, clock) -> None:
        monitor.record_metric(make_sample(operation="old", timestamp_ms=clock()))
        clock.advance(10_000)
        monitor.record_metric(make_sample(operation="new", timestamp_ms=clock()))

        assert set(monitor.get_all_stats()) == {"old", "new"}
        assert set(monitor.get_all_stats(window_ms=5000)) == {"new"}

    @pytest.mark.core
    def test_get_samples(self, monitor, clock) -> None:
        monitor.record_metric(make_sample(operation="a", timestamp_ms=clock()))
        clock.advance(10_000)
        monitor.record_metric(make_sample(operation="b", timestamp_ms=clock()))

        assert [s.operation for s in monitor.get_samples()] == ["a", "b"]
        assert [s.operation for s in monitor.get_samples("b")] == ["b"]
        assert [s.operation for s in monitor.get_samples(window_ms=5000)] == ["b"]
        assert monitor.get_samples("missing") == []

    @pytest.mark.core
    def test_summary_zero_window_covers_everything(self, monitor, clock) -> None:
        monitor.add_alert_rule(slow_rule(time_window_ms=0))
        monitor.record_metric(make_sample(duration_ms=150.0, timestamp_ms=clock()))
        clock.advance(2 * HOUR_MS)

        assert monitor.get_summary().total_requests == 0
        summary = monitor.get_summary(0)
        assert summary.total_requests == 1
        assert [a.rule_id for a in summary.alerts] == ["slow"]

    @pytest.mark.core
    def test_health_follows_window(self, monitor, clock) -> None:
        assert monitor.get_health_status().healthy

        monitor.record_metric(make_sample(duration_ms=6000.0, timestamp_ms=clock()))
        health = monitor.get_health_status()
        assert not health.healthy
        assert "High average response time" in health.issues

        clock.advance(HOUR_MS)
        assert monitor.get_health_status().healthy

    @pytest.mark.core
    def test_export_json_round_trip(self, monitor, clock) -> None:
        for d in range(10, 101, 10):
            monitor.record_metric(
                make_sample(duration_ms=float(d), timestamp_ms=clock())
            )
        monitor.record_metric(
            make_sample(duration_ms=10.0, success=False, timestamp_ms=clock())
        )

        document = json.loads(monitor.export_metrics("json"))

        assert document["summary"]["errorRate"] == pytest.approx(1 / 11)
        assert document["operations"]["db.query"]["p95DurationMs"] == 100.0
        assert document["summary"]["totalRequests"] == 11

    @pytest.mark.core
    def test_export_prometheus(self, monitor, clock) -> None:
        monitor.record_metric(make_sample(operation="http.get", timestamp_ms=clock()))

        output = monitor.export_metrics("prometheus")

        assert "http_get_duration_seconds_count 1" in output
        assert "http_get_success_rate 1.0" in output

    @pytest.mark.core
    def test_export_unknown_format(self, monitor) -> None:
        with pytest.raises(UnsupportedFormatError, match="xml"):
            monitor.export_metrics("xml")

    @pytest.mark.core
    def test_sweep_evicts_expired(self, monitor, clock) -> None:
        monitor.record_metric(make_sample(timestamp_ms=clock()))
        clock.advance(24 * HOUR_MS + 1)

        assert monitor.sweep() == 1
        assert monitor.get_all_stats() == {}
