"""FastAPI adapter for performance monitoring endpoints."""

from typing import Any

from fastapi import APIRouter, Body, HTTPException, Query, Response
from fastapi.responses import JSONResponse

from perfwatch.core.encoding.json_export import (
    alert_to_dict,
    health_to_dict,
    rule_to_dict,
    sample_to_dict,
    stats_to_dict,
)
from perfwatch.core.exceptions import PerfwatchError
from perfwatch.core.rules import alert_rule_from_dict
from perfwatch.monitor import PerformanceMonitor


def create_monitor_router(monitor: PerformanceMonitor) -> APIRouter:
    """Create a FastAPI router exposing a PerformanceMonitor.

    Args:
        monitor: The application's monitor instance.

    Returns:
        APIRouter with metrics, stats, health, alert and rule endpoints.
    """
    router = APIRouter()

    @router.get("/metrics")
    async def get_metrics() -> Response:
        """Return stats in Prometheus text format."""
        return Response(
            content=monitor.export_metrics("prometheus"),
            media_type="text/plain; version=0.0.4; charset=utf-8",
        )

    @router.get("/metrics/json")
    async def get_metrics_json() -> Response:
        """Return the full JSON snapshot."""
        return Response(
            content=monitor.export_metrics("json"),
            media_type="application/json",
        )

    @router.get("/health")
    async def get_health() -> JSONResponse:
        """Return health status; 503 when any issue is present."""
        status = monitor.get_health_status()
        return JSONResponse(
            content=health_to_dict(status),
            status_code=200 if status.healthy else 503,
        )

    @router.get("/stats")
    async def get_all_stats(
        window: int | None = Query(default=None, ge=0),
    ) -> dict[str, Any]:
        """Return stats for every operation.

        Args:
            window: Trailing window in milliseconds. Omit or 0 for all samples.
        """
        return {
            op: stats_to_dict(s)
            for op, s in monitor.get_all_stats(window or None).items()
        }

    @router.get("/stats/{operation}")
    async def get_stats(
        operation: str,
        window: int | None = Query(default=None, ge=0),
    ) -> dict[str, Any]:
        """Return stats for one operation; 404 when it has no samples."""
        stats = monitor.get_stats(operation, window or None)
        if stats is None:
            raise HTTPException(status_code=404, detail="No samples for operation")
        return stats_to_dict(stats)

    @router.get("/alerts")
    async def get_alerts(operation: str | None = None) -> list[dict[str, Any]]:
        """Return alerts, newest first."""
        return [alert_to_dict(a) for a in monitor.get_alerts(operation)]

    @router.get("/samples")
    async def get_samples(
        operation: str | None = None,
        window: int | None = Query(default=None, ge=0),
    ) -> list[dict[str, Any]]:
        """Return retained samples, oldest first within each operation."""
        return [
            sample_to_dict(s) for s in monitor.get_samples(operation, window or None)
        ]

    @router.get("/rules")
    async def get_rules() -> list[dict[str, Any]]:
        return [rule_to_dict(r) for r in monitor.get_alert_rules()]

    @router.post("/rules", status_code=201)
    async def add_rule(payload: dict[str, Any] = Body(...)) -> dict[str, Any]:
        """Register an alert rule; 400 when invalid or the id is taken."""
        try:
            rule = alert_rule_from_dict(payload)
            monitor.add_alert_rule(rule)
        except PerfwatchError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        return rule_to_dict(rule)

    @router.delete("/rules/{rule_id}", status_code=204)
    async def delete_rule(rule_id: str) -> Response:
        if not monitor.remove_alert_rule(rule_id):
            raise HTTPException(status_code=404, detail="Unknown alert rule")
        return Response(status_code=204)

    return router
