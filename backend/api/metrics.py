"""
Prometheus metrics for the HTTP API.

Each application gets its own registry holding the default process, platform
and garbage-collector collectors plus an `http_requests_total` counter
labelled by method, route template and status code.
"""

from typing import Callable

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    GCCollector,
    PlatformCollector,
    ProcessCollector,
    generate_latest,
)

UNMATCHED_ROUTE = "unmatched"


class RequestMetrics:
    """Registry and request counter for one application."""

    content_type = CONTENT_TYPE_LATEST

    def __init__(self):
        self.registry = CollectorRegistry()
        ProcessCollector(registry=self.registry)
        PlatformCollector(registry=self.registry)
        GCCollector(registry=self.registry)
        self.http_requests_total = Counter(
            'http_requests_total',
            'Total number of HTTP requests',
            ['method', 'route', 'status'],
            registry=self.registry,
        )

    def observe(self, method: str, route: str, status: int) -> None:
        self.http_requests_total.labels(method=method, route=route, status=str(status)).inc()

    def render(self) -> bytes:
        return generate_latest(self.registry)


class MetricsMiddleware:
    """
    ASGI middleware counting every HTTP response.

    The route label is the matched path template (/api/containers/{container_id})
    so ids do not create new series; requests no route matched share one label.
    """

    def __init__(self, app: Callable, metrics: RequestMetrics) -> None:
        self.app = app
        self.metrics = metrics

    async def __call__(self, scope: dict, receive: Callable, send: Callable) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        status_code = 500

        async def send_wrapper(message: dict) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            route = scope.get("route")
            route_path = getattr(route, "path", None) or UNMATCHED_ROUTE
            self.metrics.observe(scope["method"], route_path, status_code)
