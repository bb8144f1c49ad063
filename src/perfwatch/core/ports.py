"""Port interfaces for storage adapters, probes and observers.

These protocols define the contracts that adapters must implement.
The core depends only on these interfaces, not concrete implementations.
"""

from typing import Protocol, runtime_checkable

from perfwatch.core.models import Alert, AlertRule, RuleChange, Sample


@runtime_checkable
class SampleStorePort(Protocol):
    """Port for per-operation sample storage.

    Examples: RingBufferSampleStore.
    """

    def record(self, sample: Sample) -> None:
        """Append a sample to its operation's buffer."""
        ...

    def query(
        self, operation: str, window_ms: int | None = None, now_ms: int = 0
    ) -> list[Sample]:
        """Return the operation's samples inside a trailing window.

        Args:
            operation: Operation name.
            window_ms: Returns samples with timestamp_ms > now_ms - window_ms.
                       None or 0 returns all retained samples.
            now_ms: Reference time in epoch milliseconds.

        Returns:
            New list of samples, ordered by timestamp ascending.
        """
        ...

    def operations(self) -> list[str]:
        """List the names of all operations with retained samples."""
        ...

    def evict_before(self, cutoff_ms: int) -> int:
        """Drop samples with timestamp_ms < cutoff_ms and return how many."""
        ...


@runtime_checkable
class AlertStorePort(Protocol):
    """Port for fired alert storage.

    Examples: InMemoryAlertStore.
    """

    def append(self, alert: Alert) -> None:
        """Store a fired alert."""
        ...

    def read(self, operation: str | None = None) -> list[Alert]:
        """Return alerts, newest first, optionally for one operation."""
        ...

    def clear(self, operation: str | None = None) -> None:
        """Drop alerts for one operation, or all alerts."""
        ...

    def evict_before(self, cutoff_ms: int) -> int:
        """Drop alerts triggered before cutoff_ms and return how many."""
        ...


@runtime_checkable
class ResourceProbe(Protocol):
    """Reads the current resource usage of the process."""

    def memory_bytes(self) -> int:
        """Return the memory currently used by the process, in bytes."""
        ...


@runtime_checkable
class MetricObserver(Protocol):
    """Receives every recorded sample."""

    def notify_metric(self, sample: Sample) -> None: ...


@runtime_checkable
class AlertObserver(Protocol):
    """Receives every fired alert."""

    def notify_alert(self, alert: Alert) -> None: ...


@runtime_checkable
class RuleObserver(Protocol):
    """Receives alert rule registrations and removals."""

    def notify_rule_change(self, change: RuleChange, rule: AlertRule) -> None: ...
