"""
Prometheus metrics for the JWK Set resolution service.
"""

import time
from contextlib import contextmanager
from typing import Dict, Any, Optional

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest


class MetricsCollector:
    """Metrics collector bound to its own registry."""

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry or CollectorRegistry()
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up key resolution metrics."""
        self._metrics["http_requests_total"] = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["method", "endpoint", "status_code"],
            registry=self.registry
        )

        self._metrics["jwks_key_lookups_total"] = Counter(
            "jwks_key_lookups_total",
            "Total key lookups by key ID",
            ["result"],
            registry=self.registry
        )

        self._metrics["jwks_refresh_total"] = Counter(
            "jwks_refresh_total",
            "Total JWK Set refreshes",
            ["status"],
            registry=self.registry
        )

        self._metrics["jwks_refresh_duration_seconds"] = Histogram(
            "jwks_refresh_duration_seconds",
            "JWK Set refresh duration in seconds",
            registry=self.registry
        )

    def get_metric(self, name: str):
        """Get a metric by name."""
        return self._metrics.get(name)

    def record_http_request(self, method: str, endpoint: str, status_code: int):
        self._metrics["http_requests_total"].labels(
            method=method,
            endpoint=endpoint,
            status_code=str(status_code)
        ).inc()

    def record_lookup(self, result: str):
        """Record a key lookup outcome: hit, miss or error."""
        self._metrics["jwks_key_lookups_total"].labels(result=result).inc()

    def record_refresh(self, status: str):
        self._metrics["jwks_refresh_total"].labels(status=status).inc()

    @contextmanager
    def time_refresh(self):
        """Time a refresh into the duration histogram."""
        start_time = time.perf_counter()
        try:
            yield
        finally:
            self._metrics["jwks_refresh_duration_seconds"].observe(time.perf_counter() - start_time)

    def render(self) -> bytes:
        """Render the registry in the Prometheus text format."""
        return generate_latest(self.registry)


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a service."""
    return MetricsCollector(service_name, registry)
