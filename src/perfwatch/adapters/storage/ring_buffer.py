"""Ring buffer storage adapter for samples.

Provides bounded in-memory storage that automatically evicts oldest
samples when an operation's buffer is full. Memory use is predictable:
at most max_size samples are kept per operation.
"""

import threading
from collections import deque

from perfwatch.core.models import Sample


class RingBufferSampleStore:
    """Ring buffer implementation of SampleStorePort.

    Each operation gets its own fixed-size circular buffer. When a buffer
    is full, the oldest sample is evicted to make room for the new one.
    All reads return copies, so callers may iterate while other threads
    keep recording.

    Args:
        max_size: Maximum number of samples kept per operation.
    """

    def __init__(self, max_size: int = 1000) -> None:
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        self._max_size = max_size
        self._buffers: dict[str, deque[Sample]] = {}
        self._lock = threading.Lock()

    @property
    def max_size(self) -> int:
        return self._max_size

    def record(self, sample: Sample) -> None:
        """Append a sample to its operation's buffer."""
        with self._lock:
            buffer = self._buffers.get(sample.operation)
            if buffer is None:
                buffer = deque(maxlen=self._max_size)
                self._buffers[sample.operation] = buffer
            buffer.append(sample)

    def query(
        self, operation: str, window_ms: int | None = None, now_ms: int = 0
    ) -> list[Sample]:
        """Return samples with timestamp_ms > now_ms - window_ms.

        A window of None or 0 returns every retained sample. Results are
        ordered by timestamp ascending.
        """
        with self._lock:
            buffer = self._buffers.get(operation)
            snapshot = list(buffer) if buffer is not None else []
        if window_ms:
            cutoff = now_ms - window_ms
            snapshot = [s for s in snapshot if s.timestamp_ms > cutoff]
        return sorted(snapshot, key=lambda s: s.timestamp_ms)

    def operations(self) -> list[str]:
        with self._lock:
            return list(self._buffers)

    def count(self, operation: str | None = None) -> int:
        """Return the number of retained samples, optionally for one operation."""
        with self._lock:
            if operation is not None:
                buffer = self._buffers.get(operation)
                return len(buffer) if buffer is not None else 0
            return sum(len(b) for b in self._buffers.values())

    def evict_before(self, cutoff_ms: int) -> int:
        """Drop samples with timestamp_ms < cutoff_ms.

        Operations left without samples are forgotten entirely.
        """
        evicted = 0
        with self._lock:
            for operation in list(self._buffers):
                buffer = self._buffers[operation]
                kept = [s for s in buffer if s.timestamp_ms >= cutoff_ms]
                evicted += len(buffer) - len(kept)
                if kept:
                    self._buffers[operation] = deque(kept, maxlen=self._max_size)
                else:
                    del self._buffers[operation]
        return evicted

    def clear(self, operation: str | None = None) -> None:
        """Clear samples for one operation, or all samples."""
        with self._lock:
            if operation is None:
                self._buffers.clear()
            else:
                self._buffers.pop(operation, None)
