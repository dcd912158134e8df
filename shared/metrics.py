"""
Shared metrics configuration for the chain-data REST API.
"""

from typing import Dict, Any, Optional, Tuple

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    GCCollector,
    Histogram,
    Info,
    PlatformCollector,
    ProcessCollector,
    generate_latest,
)


class MetricsCollector:
    """Centralized metrics collector for a service.

    Each collector owns its registry unless one is supplied, so several app
    instances can live in one process (tests build many) without clashing on
    metric names.
    """

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry if registry is not None else self._create_registry()
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()

    @staticmethod
    def _create_registry() -> CollectorRegistry:
        registry = CollectorRegistry()
        ProcessCollector(registry=registry)
        PlatformCollector(registry=registry)
        GCCollector(registry=registry)
        return registry

    def _setup_metrics(self):
        """Set up common metrics for the service."""

        self._metrics["service_info"] = Info(
            "service",
            "Service information",
            registry=self.registry
        )
        self._metrics["service_info"].info({
            "service": self.service_name,
            "version": "1.0.0"
        })

        # HTTP metrics
        self._metrics["http_requests_total"] = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["method", "status_code"],
            registry=self.registry
        )

        self._metrics["http_request_duration_seconds"] = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["method"],
            registry=self.registry
        )

        self._metrics["http_route_requests_total"] = Counter(
            "http_route_requests_total",
            "Requests that reached a mounted router, by route template",
            ["route", "method", "outcome"],
            registry=self.registry
        )

        # Policy metrics
        self._metrics["rate_limit_hits_total"] = Counter(
            "rate_limit_hits_total",
            "Requests rejected by the rate limiter",
            registry=self.registry
        )

        self._metrics["auth_failures_total"] = Counter(
            "auth_failures_total",
            "Requests rejected by an API key guard",
            ["guard", "reason"],
            registry=self.registry
        )

    def get_metric(self, name: str):
        """Get a metric by name."""
        return self._metrics.get(name)

    def render(self) -> Tuple[bytes, str]:
        """Serialize the registry in the text exposition format."""
        return generate_latest(self.registry), CONTENT_TYPE_LATEST

    def record_http_request(self, method: str, status_code: int, duration: float):
        """Record HTTP request metrics."""
        self._metrics["http_requests_total"].labels(
            method=method,
            status_code=str(status_code)
        ).inc()

        self._metrics["http_request_duration_seconds"].labels(method=method).observe(duration)

    def record_route(self, route: str, method: str, outcome: str):
        self._metrics["http_route_requests_total"].labels(route=route, method=method, outcome=outcome).inc()

    def record_rate_limit_hit(self):
        self._metrics["rate_limit_hits_total"].inc()

    def record_auth_failure(self, guard: str, reason: str):
        self._metrics["auth_failures_total"].labels(guard=guard, reason=reason).inc()


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a service."""
    return MetricsCollector(service_name, registry)
