"""In-memory storage adapter for fired alerts."""

import threading

from perfwatch.core.models import Alert


class InMemoryAlertStore:
    """In-memory implementation of AlertStorePort.

    Stores alerts in per-operation lists. Alerts are one-shot
    notifications, so nothing is ever updated in place; the retention
    sweep is the only thing that removes them besides clear().
    """

    def __init__(self) -> None:
        self._alerts: dict[str, list[Alert]] = {}
        self._lock = threading.Lock()

    def append(self, alert: Alert) -> None:
        """Store a fired alert."""
        with self._lock:
            self._alerts.setdefault(alert.operation, []).append(alert)

    def read(self, operation: str | None = None) -> list[Alert]:
        """Return alerts ordered by trigger time, newest first."""
        with self._lock:
            if operation is not None:
                alerts = list(self._alerts.get(operation, []))
            else:
                alerts = [a for group in self._alerts.values() for a in group]
        return sorted(alerts, key=lambda a: a.triggered_at_ms, reverse=True)

    def clear(self, operation: str | None = None) -> None:
        with self._lock:
            if operation is None:
                self._alerts.clear()
            else:
                self._alerts.pop(operation, None)

    def evict_before(self, cutoff_ms: int) -> int:
        """Drop alerts triggered before cutoff_ms."""
        evicted = 0
        with self._lock:
            for operation in list(self._alerts):
                alerts = self._alerts[operation]
                kept = [a for a in alerts if a.triggered_at_ms >= cutoff_ms]
                evicted += len(alerts) - len(kept)
                if kept:
                    self._alerts[operation] = kept
                else:
                    del self._alerts[operation]
        return evicted
