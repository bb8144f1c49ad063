"""Storage adapters implementing core ports."""

from perfwatch.adapters.storage.in_memory import InMemoryAlertStore
from perfwatch.adapters.storage.ring_buffer import RingBufferSampleStore

__all__ = [
    "InMemoryAlertStore",
    "RingBufferSampleStore",
]
