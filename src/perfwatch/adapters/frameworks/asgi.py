"""ASGI generic adapter for performance monitoring.

This adapter provides framework-agnostic ASGI middleware that tracks every
HTTP request as an operation, and an ASGI application exposing the
monitor's exports. Both work with any ASGI server (uvicorn, hypercorn,
daphne) without requiring FastAPI.
"""

import fnmatch
import json
import logging
import time
import uuid
from collections.abc import Callable, Coroutine
from typing import Any
from urllib.parse import parse_qs

from perfwatch.adapters.frameworks.query_params import (
    _parse_operation_param,
    _parse_window_param,
)
from perfwatch.core.encoding.json_export import health_to_dict, stats_to_dict
from perfwatch.core.encoding.ndjson import encode_alerts, encode_samples
from perfwatch.core.models import FailureInfo, Sample
from perfwatch.monitor import PerformanceMonitor

logger = logging.getLogger(__name__)

# ASGI type aliases
Scope = dict[str, Any]
Receive = Callable[[], Coroutine[Any, Any, dict[str, Any]]]
Send = Callable[[dict[str, Any]], Coroutine[Any, Any, None]]
ASGIApp = Callable[[Scope, Receive, Send], Coroutine[Any, Any, None]]

PROMETHEUS_CONTENT_TYPE = "text/plain; version=0.0.4; charset=utf-8"


def _parse_query_params(scope: Scope) -> dict[str, list[str]]:
    """Parse query string from ASGI scope into parameter dictionary."""
    query_string = scope.get("query_string", b"").decode(errors="replace")
    return parse_qs(query_string)


def _extract_request_id(scope: Scope, header_name: str = "X-Request-ID") -> str:
    """Extract or generate a request ID from ASGI scope headers.

    Searches for the specified header (case-insensitive). If not found,
    generates a new UUID.
    """
    header_bytes = header_name.lower().encode()
    headers: list[tuple[bytes, bytes]] = scope.get("headers", [])
    for name, value in headers:
        if name.lower() == header_bytes:
            return str(value.decode("utf-8", errors="replace"))

    return str(uuid.uuid4())


def _default_operation_name(scope: Scope) -> str:
    return f"{scope['method']} {scope['path']}"


async def _send_response(send: Send, status: int, content_type: str, body: str) -> None:
    """Send an HTTP response with headers and body."""
    headers = [(b"content-type", content_type.encode())]
    await send({"type": "http.response.start", "status": status, "headers": headers})
    await send({"type": "http.response.body", "body": body.encode()})


async def _handle_endpoint(
    send: Send,
    endpoint_func: Callable[[], tuple[int, str]],
    content_type: str,
    log_message: str,
) -> None:
    """Execute an endpoint function with error handling and send response.

    Args:
        send: ASGI send callable for writing response.
        endpoint_func: Function returning (status, body).
        content_type: Content-Type header for the response.
        log_message: Message to log on error.
    """
    try:
        status, body = endpoint_func()
        await _send_response(send, status, content_type, body)
    except Exception:
        logger.exception(log_message)
        error_body = json.dumps({"error": "Internal Server Error"})
        await _send_response(send, 500, "application/json", error_body)


class ASGIPerformanceMiddleware:
    """ASGI middleware that records one sample per HTTP request.

    A request counts as failed when the wrapped app raises or responds
    with a 5xx status. Exceptions are re-raised after recording.
    """

    def __init__(
        self,
        app: ASGIApp,
        monitor: PerformanceMonitor,
        exclude_paths: list[str] | None = None,
        request_id_header: str = "X-Request-ID",
        operation_name: Callable[[Scope], str] | None = None,
    ) -> None:
        """Initialize the middleware with a wrapped app and a monitor.

        Args:
            app: The ASGI application to wrap.
            monitor: Monitor receiving request samples.
            exclude_paths: Paths not to track. Supports exact matches and
                          wildcard patterns (e.g., "/internal/*").
            request_id_header: Header to read the request ID from.
            operation_name: Maps a scope to an operation name
                           (default: "{METHOD} {path}").
        """
        self.app = app
        self.monitor = monitor
        self.exclude_paths = exclude_paths or []
        self.request_id_header = request_id_header
        self.operation_name = operation_name or _default_operation_name
        self.record_metrics = True

    def set_record_metrics(self, enabled: bool) -> None:
        """Enable or disable request tracking without unwrapping the app."""
        self.record_metrics = enabled

    def _path_excluded(self, path: str) -> bool:
        """Check if path matches any pattern in exclude_paths."""
        return any(fnmatch.fnmatch(path, pattern) for pattern in self.exclude_paths)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """ASGI callable interface that processes requests through the wrapped app."""
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        start_ts = self.monitor.clock()
        start_time = time.perf_counter()
        captured: dict[str, Any] = {"status": None, "exception": None}

        async def wrapped_send(message: dict[str, Any]) -> None:
            if message["type"] == "http.response.start":
                captured["status"] = message["status"]
            await send(message)

        try:
            await self.app(scope, receive, wrapped_send)
        except BaseException as e:
            captured["exception"] = e
            captured["status"] = 500
            raise
        finally:
            duration_ms = (time.perf_counter() - start_time) * 1000
            self._record(scope, captured, start_ts, duration_ms)

    def _record(
        self,
        scope: Scope,
        captured: dict[str, Any],
        start_ts: int,
        duration_ms: float,
    ) -> None:
        if not self.record_metrics or self._path_excluded(scope["path"]):
            return
        status = captured["status"] or 0
        exc = captured["exception"]
        sample = Sample(
            operation=self.operation_name(scope),
            duration_ms=duration_ms,
            success=exc is None and status < 500,
            timestamp_ms=start_ts,
            metadata={
                "request_id": _extract_request_id(scope, self.request_id_header),
                "method": scope["method"],
                "path": scope["path"],
                "status_code": status,
            },
            error=FailureInfo.from_exception(exc) if exc is not None else None,
        )
        self.monitor.record_metric(sample)


def create_asgi_app(monitor: PerformanceMonitor) -> ASGIApp:
    """Create an ASGI app exposing the monitor's exports.

    Endpoints:
        /metrics        Prometheus text format
        /metrics/json   Full JSON snapshot
        /stats          JSON stats per operation (?window=<ms>)
        /health         JSON health status (503 when unhealthy)
        /alerts         NDJSON alerts, newest first (?operation=<name>)
        /samples        NDJSON samples (?operation=<name>&window=<ms>)
    """

    def health() -> tuple[int, str]:
        status = monitor.get_health_status()
        return (200 if status.healthy else 503), json.dumps(health_to_dict(status))

    async def app(scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            return

        path = scope["path"]
        params = _parse_query_params(scope)

        if path == "/metrics":
            await _handle_endpoint(
                send,
                lambda: (200, monitor.export_metrics("prometheus")),
                PROMETHEUS_CONTENT_TYPE,
                "Error encoding prometheus endpoint",
            )
        elif path == "/metrics/json":
            await _handle_endpoint(
                send,
                lambda: (200, monitor.export_metrics("json")),
                "application/json",
                "Error encoding json export endpoint",
            )
        elif path == "/stats":
            window = _parse_window_param(params)
            await _handle_endpoint(
                send,
                lambda: (
                    200,
                    json.dumps(
                        {
                            op: stats_to_dict(s)
                            for op, s in monitor.get_all_stats(window).items()
                        }
                    ),
                ),
                "application/json",
                "Error encoding stats endpoint",
            )
        elif path == "/health":
            await _handle_endpoint(
                send, health, "application/json", "Error encoding health endpoint"
            )
        elif path == "/alerts":
            operation = _parse_operation_param(params)
            await _handle_endpoint(
                send,
                lambda: (200, encode_alerts(monitor.get_alerts(operation))),
                "application/x-ndjson",
                "Error encoding alerts endpoint",
            )
        elif path == "/samples":
            operation = _parse_operation_param(params)
            window = _parse_window_param(params)
            await _handle_endpoint(
                send,
                lambda: (200, encode_samples(monitor.get_samples(operation, window))),
                "application/x-ndjson",
                "Error encoding samples endpoint",
            )
        else:
            await _send_response(send, 404, "text/plain", "Not Found")

    return app
