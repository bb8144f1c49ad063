"""Example FastAPI application with performance monitoring.

Run with:
    uvicorn examples.fastapi_example:app --reload

Endpoints:
    /monitor/metrics         - Prometheus text format
    /monitor/metrics/json    - Full JSON snapshot
    /monitor/health          - Health status (503 when unhealthy)
    /monitor/stats           - Stats per operation (?window=<ms>)
    /monitor/alerts          - Fired alerts, newest first
    /monitor/rules           - List, add (POST) and delete alert rules

Instrumentation:
    Every request is timed by ASGIPerformanceMiddleware. The /users
    handler also times its simulated database call with track_async().
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from perfwatch import AlertRule, Comparison, LoggingObserver, Metric, PerformanceMonitor
from perfwatch.adapters.frameworks.asgi import ASGIPerformanceMiddleware
from perfwatch.adapters.frameworks.fastapi import create_monitor_router

logging.basicConfig(level=logging.INFO)

monitor = PerformanceMonitor()
monitor.subscribe(LoggingObserver())
monitor.add_alert_rule(
    AlertRule(
        id="slow_user_fetch",
        operation="db.fetch_users",
        metric=Metric.DURATION,
        threshold=40,
        comparison=Comparison.GT,
        time_window_ms=60_000,
        cooldown_ms=30_000,
    )
)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    monitor.start()
    yield
    monitor.stop()


app = FastAPI(title="Performance Monitoring Example", lifespan=lifespan)
app.include_router(create_monitor_router(monitor), prefix="/monitor")
app.add_middleware(
    ASGIPerformanceMiddleware, monitor=monitor, exclude_paths=["/monitor/*"]
)


async def fetch_users() -> list[dict[str, str]]:
    # Simulate database fetch
    await asyncio.sleep(0.05)
    return [{"id": "1", "name": "Alice"}, {"id": "2", "name": "Bob"}]


@app.get("/")
async def root() -> dict[str, str]:
    return {"message": "Hello! Check /monitor/stats and /monitor/metrics."}


@app.get("/users")
async def get_users() -> dict[str, list[dict[str, str]]]:
    """Users endpoint whose database call usually trips slow_user_fetch."""
    users = await monitor.track_async("db.fetch_users", fetch_users)
    return {"users": users}
