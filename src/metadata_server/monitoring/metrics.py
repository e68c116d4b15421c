"""
Prometheus metrics collection and exposure.

Covers HTTP traffic on the public listener, lookup outcomes and the answers
reload pipeline.
"""

import threading
import time
from contextlib import contextmanager
from typing import Optional

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)


class MetricsCollector:
    """
    Metrics collector for the metadata server.

    Collects and exposes metrics for:
    - Request counts and latency per route
    - Lookup hits and misses per version
    - Reload counts, durations and outcomes per trigger source
    - Size and age of the published answers snapshot
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        """Initialize metrics collector with optional custom registry."""
        self.registry = registry or CollectorRegistry()
        self._lock = threading.Lock()

        self._init_request_metrics()
        self._init_lookup_metrics()
        self._init_reload_metrics()

    def _init_request_metrics(self):
        """Initialize request processing metrics."""
        self.http_requests_total = Counter(
            'metadata_http_requests_total',
            'Total number of HTTP requests',
            ['method', 'route', 'status_code'],
            registry=self.registry
        )

        self.request_duration = Histogram(
            'metadata_http_request_duration_seconds',
            'HTTP request duration',
            ['method', 'route'],
            buckets=[0.0005, 0.001, 0.0025, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 1.0],
            registry=self.registry
        )

        self.active_requests = Gauge(
            'metadata_active_requests',
            'Number of currently active requests',
            registry=self.registry
        )

    def _init_lookup_metrics(self):
        """Initialize lookup outcome metrics."""
        self.lookups_total = Counter(
            'metadata_lookups_total',
            'Metadata lookups by outcome',
            ['version', 'outcome'],
            registry=self.registry
        )

    def _init_reload_metrics(self):
        """Initialize answers reload metrics."""
        self.reloads_total = Counter(
            'metadata_reloads_total',
            'Answers reloads by trigger source and outcome',
            ['source', 'status'],
            registry=self.registry
        )

        self.reload_duration = Histogram(
            'metadata_reload_duration_seconds',
            'Time spent loading and merging the answers file',
            ['source'],
            buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0],
            registry=self.registry
        )

        self.answers_versions = Gauge(
            'metadata_answers_versions',
            'Number of versions in the published answers',
            registry=self.registry
        )

        self.last_reload_timestamp = Gauge(
            'metadata_last_successful_reload_timestamp_seconds',
            'Time of the last successful answers load',
            registry=self.registry
        )

    def record_request(
        self,
        method: str,
        route: str,
        status_code: int,
        duration_seconds: float
    ):
        """Record HTTP request metrics."""
        with self._lock:
            self.http_requests_total.labels(
                method=method,
                route=route,
                status_code=str(status_code)
            ).inc()

            self.request_duration.labels(method=method, route=route).observe(duration_seconds)

    def record_lookup(self, version: str, found: bool):
        """Record a lookup hit or miss."""
        with self._lock:
            self.lookups_total.labels(
                version=version,
                outcome="found" if found else "not_found"
            ).inc()

    def record_reload(
        self,
        source: str,
        status: str,
        duration_seconds: float,
        versions: Optional[int] = None
    ):
        """Record the outcome of a reload."""
        with self._lock:
            self.reloads_total.labels(source=source, status=status).inc()
            self.reload_duration.labels(source=source).observe(duration_seconds)

            if status == "success":
                self.last_reload_timestamp.set(time.time())
                if versions is not None:
                    self.answers_versions.set(versions)

    @contextmanager
    def track_request(self):
        """Context manager counting in-flight requests."""
        self.active_requests.inc()
        try:
            yield
        finally:
            self.active_requests.dec()

    def get_metrics(self) -> bytes:
        """Get metrics in Prometheus format."""
        return generate_latest(self.registry)

    def get_metrics_content_type(self) -> str:
        """Get the content type for metrics response."""
        return CONTENT_TYPE_LATEST


# Global metrics collector instance
_metrics_collector: Optional[MetricsCollector] = None


def get_metrics_collector() -> MetricsCollector:
    """Get the global metrics collector instance."""
    global _metrics_collector
    if _metrics_collector is None:
        _metrics_collector = MetricsCollector()
    return _metrics_collector


def initialize_metrics(registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Initialize the global metrics collector."""
    global _metrics_collector
    _metrics_collector = MetricsCollector(registry)
    return _metrics_collector
