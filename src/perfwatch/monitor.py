"""PerformanceMonitor: the entry point applications instrument against.

Construct one monitor at startup and pass it to the code that needs it:

    monitor = PerformanceMonitor()
    monitor.start()
    rows = monitor.track("db.query", run_query, sql)
"""

import logging
import threading
import time
from collections.abc import Awaitable, Callable, Generator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, TypeVar

from perfwatch.adapters.resources import PsutilResourceProbe
from perfwatch.adapters.storage.in_memory import InMemoryAlertStore
from perfwatch.adapters.storage.ring_buffer import RingBufferSampleStore
from perfwatch.config import MonitorConfig
from perfwatch.core import samples
from perfwatch.core.encoding.json_export import encode_export
from perfwatch.core.encoding.prometheus import encode_stats
from perfwatch.core.exceptions import UnsupportedFormatError
from perfwatch.core.models import (
    Alert,
    AlertRule,
    HealthStatus,
    MetadataValue,
    OperationStats,
    ResourceDelta,
    RuleChange,
    Sample,
    Summary,
)
from perfwatch.core.ports import (
    AlertObserver,
    AlertStorePort,
    MetricObserver,
    ResourceProbe,
    RuleObserver,
    SampleStorePort,
)
from perfwatch.core.reporting import (
    collect_all_stats,
    collect_stats,
    health_status,
    summarize,
)
from perfwatch.core.retention import RetentionManager
from perfwatch.core.rules import AlertRuleEngine, default_rules

logger = logging.getLogger(__name__)

T = TypeVar("T")

Metadata = dict[str, MetadataValue]

EXPORT_FORMATS = ("json", "prometheus")


@dataclass
class TimedSample:
    """Result object for the timer() context manager."""

    sample: Sample | None = None


class PerformanceMonitor:
    """Times operations, aggregates stats and fires threshold alerts.

    Samples are kept per operation in a bounded store. Every recorded
    sample re-evaluates the alert rules bound to its operation (or to
    "*") synchronously, before record_metric() returns. A background
    retention sweep, started by start(), evicts old samples and alerts.

    All public methods are thread-safe.
    """

    def __init__(
        self,
        config: MonitorConfig | None = None,
        *,
        clock: Callable[[], int] | None = None,
        sample_store: SampleStorePort | None = None,
        alert_store: AlertStorePort | None = None,
        resource_probe: ResourceProbe | None = None,
        track_resources: bool = True,
    ) -> None:
        """Initialize the monitor.

        Args:
            config: Limits and policies (default: MonitorConfig()).
            clock: Returns the current time in epoch milliseconds.
            sample_store: Sample storage (default: RingBufferSampleStore
                sized from config).
            alert_store: Alert storage (default: InMemoryAlertStore).
            resource_probe: Memory probe used by track() (default: psutil).
            track_resources: Set False to skip resource deltas entirely.
        """
        self.config = config or MonitorConfig()
        self._clock = clock or samples.now_ms
        self._samples = sample_store or RingBufferSampleStore(
            self.config.max_samples_per_operation
        )
        self._alerts = alert_store or InMemoryAlertStore()
        self._probe = self._resolve_probe(resource_probe, track_resources)
        self._rules = AlertRuleEngine(self._samples, self._alerts, self._clock)
        self._retention = RetentionManager(
            self._samples,
            self._alerts,
            self._clock,
            retention_ms=self.config.retention_ms,
            interval_ms=self.config.cleanup_interval_ms,
        )
        self._metric_observers: list[MetricObserver] = []
        self._alert_observers: list[AlertObserver] = []
        self._rule_observers: list[RuleObserver] = []
        self._observers_lock = threading.Lock()

        if self.config.install_default_rules:
            self._install_default_rules()

    @property
    def clock(self) -> Callable[[], int]:
        """Epoch-millisecond clock used for sample and alert timestamps."""
        return self._clock

    # --- Lifecycle ---

    def start(self) -> None:
        """Start the periodic retention sweep. Safe to call repeatedly."""
        self._retention.start()

    def stop(self) -> None:
        """Stop the periodic retention sweep. Safe to call repeatedly."""
        self._retention.stop()

    def __enter__(self) -> "PerformanceMonitor":
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    def sweep(self) -> int:
        """Run one retention sweep now and return the number of evictions."""
        return self._retention.sweep()

    # --- Recording ---

    def track(
        self,
        operation: str,
        fn: Callable[..., T],
        *args: Any,
        metadata: Metadata | None = None,
        **kwargs: Any,
    ) -> T:
        """Call fn(*args, **kwargs) and record its duration and outcome.

        Exceptions raised by fn are recorded as a failed sample and then
        re-raised unchanged.
        """
        start_ts = self._clock()
        memory_before = self._read_memory()
        start = time.perf_counter()
        try:
            result = fn(*args, **kwargs)
        except BaseException as exc:
            elapsed = (time.perf_counter() - start) * 1000
            self._record_failure(operation, elapsed, exc, metadata, start_ts)
            raise
        elapsed = (time.perf_counter() - start) * 1000
        self._record_success(operation, elapsed, metadata, start_ts, memory_before)
        return result

    async def track_async(
        self,
        operation: str,
        fn: Callable[..., Awaitable[T]],
        *args: Any,
        metadata: Metadata | None = None,
        **kwargs: Any,
    ) -> T:
        """Await fn(*args, **kwargs) and record its duration and outcome.

        Cancellation is recorded as a failure with the time elapsed until
        the cancellation, then propagated.
        """
        start_ts = self._clock()
        memory_before = self._read_memory()
        start = time.perf_counter()
        try:
            result = await fn(*args, **kwargs)
        except BaseException as exc:
            elapsed = (time.perf_counter() - start) * 1000
            self._record_failure(operation, elapsed, exc, metadata, start_ts)
            raise
        elapsed = (time.perf_counter() - start) * 1000
        self._record_success(operation, elapsed, metadata, start_ts, memory_before)
        return result

    @contextmanager
    def timer(
        self, operation: str, metadata: Metadata | None = None
    ) -> Generator[TimedSample]:
        """Context manager that records one sample for the enclosed block.

        Yields:
            TimedSample whose sample is set once the block exits
        """
        result = TimedSample()
        start_ts = self._clock()
        start = time.perf_counter()
        try:
            yield result
        except BaseException as exc:
            elapsed = (time.perf_counter() - start) * 1000
            result.sample = self._record_failure(
                operation, elapsed, exc, metadata, start_ts
            )
            raise
        elapsed = (time.perf_counter() - start) * 1000
        result.sample = self._record_success(operation, elapsed, metadata, start_ts)

    def start_timing(
        self, operation: str, metadata: Metadata | None = None
    ) -> Callable[[], None]:
        """Start timing an operation measured outside of track().

        Returns:
            A stop function that records a successful sample. Only the
            first call records; later calls do nothing.
        """
        start_ts = self._clock()
        start = time.perf_counter()
        stopped = threading.Event()

        def stop() -> None:
            if stopped.is_set():
                return
            stopped.set()
            elapsed = (time.perf_counter() - start) * 1000
            self._record_success(operation, elapsed, metadata, start_ts)

        return stop

    def record_metric(self, sample: Sample) -> None:
        """Store a sample, evaluate alert rules and notify observers.

        Failures in storage, rule evaluation or observers are logged and
        never propagate to the caller. A sample the store rejects is
        neither evaluated nor published.
        """
        try:
            self._samples.record(sample)
        except Exception:
            logger.exception("Failed to store sample for %s", sample.operation)
            return
        try:
            fired = self._rules.on_sample_recorded(sample.operation)
        except Exception:
            logger.exception("Alert evaluation failed for %s", sample.operation)
            fired = []
        for alert in fired:
            self._publish_alert(alert)
        self._publish_metric(sample)

    # --- Alert rules and alerts ---

    def add_alert_rule(self, rule: AlertRule) -> None:
        """Register an alert rule.

        Raises:
            InvalidAlertRuleError: If the rule fails validation.
            DuplicateAlertRuleError: If the id is already registered.
        """
        self._rules.add_rule(rule)
        self._publish_rule_change(RuleChange.ADDED, rule)

    def remove_alert_rule(self, rule_id: str) -> bool:
        rule = self._rules.pop_rule(rule_id)
        if rule is None:
            return False
        self._publish_rule_change(RuleChange.REMOVED, rule)
        return True

    def get_alert_rules(self) -> list[AlertRule]:
        return self._rules.list_rules()

    def get_alerts(self, operation: str | None = None) -> list[Alert]:
        """Return retained alerts, newest first."""
        return self._alerts.read(operation)

    def clear_alerts(self, operation: str | None = None) -> None:
        self._alerts.clear(operation)

    # --- Reporting ---

    def get_stats(
        self, operation: str, window_ms: int | None = None
    ) -> OperationStats | None:
        """Stats for one operation, or None when it has no samples in the window."""
        return collect_stats(self._samples, operation, window_ms, self._clock())

    def get_all_stats(self, window_ms: int | None = None) -> dict[str, OperationStats]:
        return collect_all_stats(self._samples, window_ms, self._clock())

    def get_samples(
        self, operation: str | None = None, window_ms: int | None = None
    ) -> list[Sample]:
        """Retained samples for one operation, or for every operation.

        Samples are ordered by timestamp within each operation.
        """
        now = self._clock()
        if operation is None:
            operations = self._samples.operations()
        else:
            operations = [operation]
        return [
            sample
            for op in operations
            for sample in self._samples.query(op, window_ms, now)
        ]

    def get_summary(self, window_ms: int | None = None) -> Summary:
        """Summary over a trailing window (default: config.summary_window_ms).

        A window of 0 covers every retained sample and alert.
        """
        window = self.config.summary_window_ms if window_ms is None else window_ms
        now = self._clock()
        return summarize(
            collect_all_stats(self._samples, window, now),
            self._alerts.read(),
            window,
            now,
        )

    def get_health_status(self) -> HealthStatus:
        return health_status(
            self.get_summary(),
            self.config.health_max_response_time_ms,
            self.config.health_max_error_rate,
        )

    def export_metrics(self, fmt: str = "json") -> str:
        """Serialize current state.

        Args:
            fmt: "json" for a full snapshot document, "prometheus" for the
                text exposition format.

        Raises:
            UnsupportedFormatError: For any other format.
        """
        if fmt == "prometheus":
            return encode_stats(self.get_all_stats())
        if fmt == "json":
            return encode_export(
                self.get_summary(),
                self.get_all_stats(),
                self.get_alerts(),
                self._clock(),
            )
        raise UnsupportedFormatError(fmt)

    # --- Observers ---

    def subscribe(
        self, observer: MetricObserver | AlertObserver | RuleObserver
    ) -> Callable[[], None]:
        """Register an observer for samples, alerts and/or rule changes.

        The observer receives events recorded after this call only.

        Returns:
            A function that unsubscribes the observer.

        Raises:
            TypeError: If the observer implements none of notify_metric,
                notify_alert and notify_rule_change.
        """
        is_metric = isinstance(observer, MetricObserver)
        is_alert = isinstance(observer, AlertObserver)
        is_rule = isinstance(observer, RuleObserver)
        if not (is_metric or is_alert or is_rule):
            raise TypeError(
                "observer must implement notify_metric(), notify_alert() "
                "or notify_rule_change()"
            )
        with self._observers_lock:
            if is_metric:
                self._metric_observers.append(observer)  # type: ignore[arg-type]
            if is_alert:
                self._alert_observers.append(observer)  # type: ignore[arg-type]
            if is_rule:
                self._rule_observers.append(observer)  # type: ignore[arg-type]

        def unsubscribe() -> None:
            with self._observers_lock:
                if observer in self._metric_observers:
                    self._metric_observers.remove(observer)  # type: ignore[arg-type]
                if observer in self._alert_observers:
                    self._alert_observers.remove(observer)  # type: ignore[arg-type]
                if observer in self._rule_observers:
                    self._rule_observers.remove(observer)  # type: ignore[arg-type]

        return unsubscribe

    # --- Internals ---

    def _install_default_rules(self) -> None:
        for rule in default_rules(
            self.config.default_window_ms, self.config.default_cooldown_ms
        ):
            if not self._rules.has_rule(rule.id):
                self._rules.add_rule(rule)

    def _resolve_probe(
        self, probe: ResourceProbe | None, enabled: bool
    ) -> ResourceProbe | None:
        if not enabled:
            return None
        if probe is not None:
            return probe
        try:
            return PsutilResourceProbe()
        except Exception:
            logger.debug("Resource probe unavailable", exc_info=True)
            return None

    def _read_memory(self) -> int | None:
        if self._probe is None:
            return None
        try:
            return self._probe.memory_bytes()
        except Exception:
            logger.debug("Resource probe failed", exc_info=True)
            return None

    def _resource_delta(self, memory_before: int | None) -> ResourceDelta | None:
        if memory_before is None:
            return None
        memory_after = self._read_memory()
        if memory_after is None:
            return None
        return ResourceDelta(memory_bytes=memory_after - memory_before)

    def _record_success(
        self,
        operation: str,
        elapsed_ms: float,
        metadata: Metadata | None,
        start_ts: int,
        memory_before: int | None = None,
    ) -> Sample | None:
        try:
            sample = samples.success(
                operation,
                elapsed_ms,
                metadata,
                start_ts,
                self._resource_delta(memory_before),
            )
            self.record_metric(sample)
        except Exception:
            logger.exception("Failed to record sample for %s", operation)
            return None
        return sample

    def _record_failure(
        self,
        operation: str,
        elapsed_ms: float,
        exc: BaseException,
        metadata: Metadata | None,
        start_ts: int,
    ) -> Sample | None:
        try:
            sample = samples.failure(operation, elapsed_ms, exc, metadata, start_ts)
            self.record_metric(sample)
        except Exception:
            logger.exception("Failed to record failed sample for %s", operation)
            return None
        return sample

    def _publish_metric(self, sample: Sample) -> None:
        with self._observers_lock:
            observers = list(self._metric_observers)
        for observer in observers:
            try:
                observer.notify_metric(sample)
            except Exception:
                logger.exception("Metric observer %r failed", observer)

    def _publish_alert(self, alert: Alert) -> None:
        with self._observers_lock:
            observers = list(self._alert_observers)
        for observer in observers:
            try:
                observer.notify_alert(alert)
            except Exception:
                logger.exception("Alert observer %r failed", observer)

    def _publish_rule_change(self, change: RuleChange, rule: AlertRule) -> None:
        with self._observers_lock:
            observers = list(self._rule_observers)
        for observer in observers:
            try:
                observer.notify_rule_change(change, rule)
            except Exception:
                logger.exception("Rule observer %r failed", observer)
