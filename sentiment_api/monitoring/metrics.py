"""Prometheus metrics for the sentiment service.

Every app instance owns its own ``CollectorRegistry`` so that tests (and
multiple apps in one process) never collide on metric names.
"""

import time
from typing import Iterable

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)
from starlette.requests import Request
from starlette.routing import Match

UNKNOWN_ENDPOINT = "UNKNOWN"


class MetricsRegistry:
    content_type = CONTENT_TYPE_LATEST

    def __init__(self, namespace: str = "api", endpoints: Iterable[str] = ()):
        self.namespace = namespace
        self.registry = CollectorRegistry()

        self.correct_total = Counter(
            "http_requests_correct_total",
            "Total number of correct HTTP requests.",
            ["endpoint"],
            namespace=namespace,
            registry=None,
        )
        self.requests_total = Counter(
            "http_requests_total",
            "Total number of HTTP requests",
            ["endpoint", "method", "status"],
            namespace=namespace,
            registry=None,
        )
        self.request_duration = Histogram(
            "http_requests_duration_seconds",
            "HTTP request duration in seconds for all requests",
            ["endpoint", "method", "status"],
            namespace=namespace,
            registry=None,
        )
        for collector in (self.correct_total, self.requests_total, self.request_duration):
            self.register(collector)

        # export 0 instead of nothing before the first request
        for endpoint in endpoints:
            self.correct_total.labels(endpoint)

    def register(self, collector):
        # raises ValueError on duplicated names
        self.registry.register(collector)

    def increment(self, endpoint: str):
        self.correct_total.labels(endpoint).inc()

    def render(self) -> bytes:
        return generate_latest(self.registry)

    def observe_request(self, endpoint: str, method: str, status: int, elapsed: float):
        labels = (endpoint, method, str(status))
        self.requests_total.labels(*labels).inc()
        self.request_duration.labels(*labels).observe(elapsed)


def _match_path(routes, scope):
    # descends into included routers, which match without a path of their own
    for route in routes:
        match, child_scope = route.matches(scope)
        if match == Match.NONE:
            continue
        nested = getattr(route, "routes", None)
        if nested:
            path = _match_path(nested, {**scope, **child_scope})
        else:
            path = getattr(route, "path", None)
        if path:
            return path
    return None


def _route_path(request: Request) -> str:
    # the router stores the matched route in the scope once it has dispatched
    path = getattr(request.scope.get("route"), "path", None)
    if path:
        return path
    return _match_path(request.app.router.routes, request.scope) or UNKNOWN_ENDPOINT


def instrument(app, metrics: MetricsRegistry):
    """Count and time every request that reaches ``app``."""

    @app.middleware("http")
    async def record_request(request: Request, call_next):
        start = time.perf_counter()
        status = 500
        try:
            response = await call_next(request)
            status = response.status_code
            return response
        finally:
            metrics.observe_request(
                _route_path(request), request.method, status, time.perf_counter() - start
            )

    return app
