"""Shared test fixtures for all test modules."""

import httpx
import pytest

from perfwatch.config import MonitorConfig
from perfwatch.monitor import PerformanceMonitor
from tests.helpers import FakeClock, RecordingObserver


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def monitor(clock: FakeClock) -> PerformanceMonitor:
    """Monitor without built-in rules or resource probing."""
    return PerformanceMonitor(
        MonitorConfig(install_default_rules=False),
        clock=clock,
        track_resources=False,
    )


@pytest.fixture
def monitor_with_defaults(clock: FakeClock) -> PerformanceMonitor:
    """Monitor with the built-in alert rules installed."""
    return PerformanceMonitor(clock=clock, track_resources=False)


@pytest.fixture
def observer() -> RecordingObserver:
    return RecordingObserver()


# === ASGI Test Fixtures ===


@pytest.fixture
def asgi_send_capture():
    """Fixture that returns a send callable and a responses list for capture."""

    responses: list[dict[str, object]] = []

    async def send(message: dict[str, object]) -> None:
        """Capture ASGI messages."""
        responses.append(message)

    return send, responses


@pytest.fixture
def asgi_test_client():
    """Factory fixture that creates an httpx.AsyncClient for ASGI testing.

    Usage:
        async def test_something(asgi_test_client):
            app = create_asgi_app(monitor)
            async with asgi_test_client(app) as client:
                response = await client.get("/endpoint")
    """

    def _get_client(app):
        """Return an AsyncClient context manager for the given app."""
        return httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app), base_url="http://test"
        )

    return _get_client
