"""Observability module for taxoslug.

Provides structured logging and Prometheus metrics:
- JSON structured logging with cache key / operation context
- Pull-based collector for cache counters and fetch timings
"""

from taxoslug.observability.logging import LogContext, configure_logging
from taxoslug.observability.metrics import TaxonomyMetricsCollector, register_metrics

__all__ = [
    # Logging
    "LogContext",
    "configure_logging",
    # Metrics
    "TaxonomyMetricsCollector",
    "register_metrics",
]
