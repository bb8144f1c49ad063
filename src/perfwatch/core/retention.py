"""Periodic eviction of old samples and alerts."""

import logging
import threading
from collections.abc import Callable

from perfwatch.core.ports import AlertStorePort, SampleStorePort

logger = logging.getLogger(__name__)


class RetentionManager:
    """Sweeps samples and alerts older than a retention horizon.

    The sweep runs on a daemon thread every interval_ms once start() is
    called. start() and stop() are idempotent, so a manager never owns
    more than one timer thread.
    """

    def __init__(
        self,
        sample_store: SampleStorePort,
        alert_store: AlertStorePort,
        clock: Callable[[], int],
        retention_ms: int,
        interval_ms: int,
    ) -> None:
        self._samples = sample_store
        self._alerts = alert_store
        self._clock = clock
        self.retention_ms = retention_ms
        self.interval_ms = interval_ms
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._state_lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def sweep(self, now_ms: int | None = None) -> int:
        """Evict everything older than now - retention_ms.

        Returns:
            Number of samples and alerts evicted. Failures are logged and
            count as zero.
        """
        now = self._clock() if now_ms is None else now_ms
        cutoff = now - self.retention_ms
        try:
            evicted = self._samples.evict_before(cutoff)
            evicted += self._alerts.evict_before(cutoff)
        except Exception:
            logger.exception("Retention sweep failed")
            return 0
        if evicted:
            logger.debug("Retention sweep evicted %d records", evicted)
        return evicted

    def start(self) -> None:
        with self._state_lock:
            if self.running:
                return
            self._stop_event.clear()
            self._thread = threading.Thread(
                target=self._run, name="perfwatch-retention", daemon=True
            )
            self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        with self._state_lock:
            thread = self._thread
            self._thread = None
            self._stop_event.set()
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)

    def _run(self) -> None:
        while not self._stop_event.wait(self.interval_ms / 1000):
            self.sweep()
