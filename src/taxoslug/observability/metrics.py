"""Prometheus metrics for taxoslug.

The cache and resolver only keep counters; nothing is pushed. A custom
collector reads ``cache.stats()`` and ``resolver.timings()`` whenever the
registry is scraped.

Usage:
    from taxoslug.observability.metrics import register_metrics

    collector = register_metrics(runtime.cache, runtime.resolver)
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import TYPE_CHECKING, Any

from prometheus_client import REGISTRY, CollectorRegistry
from prometheus_client.core import CounterMetricFamily, GaugeMetricFamily, Metric
from prometheus_client.registry import Collector

from taxoslug.config import get_settings

if TYPE_CHECKING:
    from taxoslug.cache.tiered import TieredCache
    from taxoslug.core.resolver import TaxonomyResolver

logger = logging.getLogger(__name__)


class TaxonomyMetricsCollector(Collector):
    """Expose cache counters and fetch timings at scrape time."""

    def __init__(
        self,
        cache: TieredCache[Any],
        resolver: TaxonomyResolver | None = None,
        namespace: str = "taxoslug",
    ):
        self.cache = cache
        self.resolver = resolver
        self.namespace = namespace

    def collect(self) -> Iterator[Metric]:
        stats = self.cache.stats()

        yield CounterMetricFamily(
            f"{self.namespace}_cache_hits", "Cache reads served by either tier", value=stats.hits
        )
        yield CounterMetricFamily(
            f"{self.namespace}_cache_misses",
            "Cache reads that missed the in-process tier",
            value=stats.misses,
        )
        yield GaugeMetricFamily(
            f"{self.namespace}_cache_hit_rate", "Cache hit rate", value=stats.hit_rate
        )
        yield GaugeMetricFamily(
            f"{self.namespace}_cache_entries", "In-process cache entries", value=stats.entries
        )

        if self.resolver is None:
            return

        timings = self.resolver.timings()
        fetches = CounterMetricFamily(
            f"{self.namespace}_taxonomy_fetches",
            "Taxonomy populations by outcome",
            labels=["outcome"],
        )
        fetches.add_metric(["success"], timings.fetches)
        fetches.add_metric(["failure"], timings.failures)
        yield fetches

        yield CounterMetricFamily(
            f"{self.namespace}_taxonomy_fetch_duration_seconds",
            "Total time spent populating the taxonomy, retries included",
            value=timings.total_duration,
        )
        if timings.last_duration is not None:
            yield GaugeMetricFamily(
                f"{self.namespace}_taxonomy_last_fetch_duration_seconds",
                "Duration of the most recent taxonomy population",
                value=timings.last_duration,
            )


def register_metrics(
    cache: TieredCache[Any],
    resolver: TaxonomyResolver | None = None,
    registry: CollectorRegistry = REGISTRY,
    enabled: bool | None = None,
) -> TaxonomyMetricsCollector | None:
    """Register a :class:`TaxonomyMetricsCollector` with ``registry``.

    ``enabled`` defaults to ``settings.enable_metrics``. Returns None without
    registering when metrics are disabled.
    """
    if enabled is None:
        enabled = get_settings().enable_metrics
    if not enabled:
        logger.info("Metrics are disabled")
        return None

    collector = TaxonomyMetricsCollector(cache, resolver)
    registry.register(collector)
    logger.info("Prometheus taxonomy metrics registered")
    return collector
