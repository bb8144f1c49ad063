"""Sample helper functions for creating Sample objects."""

import time

from perfwatch.core.models import FailureInfo, MetadataValue, ResourceDelta, Sample


def now_ms() -> int:
    """Current Unix time in whole milliseconds."""
    return int(time.time() * 1000)


def success(
    operation: str,
    duration_ms: float,
    metadata: dict[str, MetadataValue] | None = None,
    timestamp_ms: int | None = None,
    resource_delta: ResourceDelta | None = None,
) -> Sample:
    """Create a sample for a call that completed normally.

    Args:
        operation: Operation name (e.g., "db.query")
        duration_ms: Elapsed time in milliseconds
        metadata: Optional caller context
        timestamp_ms: Start time in epoch ms (default: now)
        resource_delta: Optional resource usage change

    Returns:
        Sample with success=True
    """
    return Sample(
        operation=operation,
        duration_ms=duration_ms,
        success=True,
        timestamp_ms=now_ms() if timestamp_ms is None else timestamp_ms,
        metadata=dict(metadata or {}),
        resource_delta=resource_delta,
    )


def failure(
    operation: str,
    duration_ms: float,
    exc: BaseException,
    metadata: dict[str, MetadataValue] | None = None,
    timestamp_ms: int | None = None,
    resource_delta: ResourceDelta | None = None,
) -> Sample:
    """Create a sample for a call that raised.

    Args:
        operation: Operation name (e.g., "db.query")
        duration_ms: Elapsed time in milliseconds up to the exception
        exc: The exception raised by the call
        metadata: Optional caller context
        timestamp_ms: Start time in epoch ms (default: now)
        resource_delta: Optional resource usage change

    Returns:
        Sample with success=False and error details from the exception
    """
    return Sample(
        operation=operation,
        duration_ms=duration_ms,
        success=False,
        timestamp_ms=now_ms() if timestamp_ms is None else timestamp_ms,
        metadata=dict(metadata or {}),
        error=FailureInfo.from_exception(exc),
        resource_delta=resource_delta,
    )
