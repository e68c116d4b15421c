"""
Monitoring and observability.

- Structured JSON logging with correlation IDs
- Prometheus metrics for requests, lookups and reloads
"""

from .logging import StructuredLogger, configure_logging, get_logger, set_log_level
from .metrics import MetricsCollector, get_metrics_collector, initialize_metrics

__all__ = [
    "StructuredLogger",
    "get_logger",
    "configure_logging",
    "set_log_level",
    "MetricsCollector",
    "get_metrics_collector",
    "initialize_metrics",
]
