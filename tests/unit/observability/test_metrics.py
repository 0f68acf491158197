"""Tests for the Prometheus collector."""

from unittest.mock import AsyncMock

import pytest
from prometheus_client import CollectorRegistry

from taxoslug.cache.tiered import TieredCache
from taxoslug.config import Settings
from taxoslug.core.resolver import TaxonomyMapping, TaxonomyResolver
from taxoslug.core.retry import RetryPolicy
from taxoslug.observability.metrics import TaxonomyMetricsCollector, register_metrics


@pytest.fixture
def registry() -> CollectorRegistry:
    """Isolated registry per test."""
    return CollectorRegistry()


class TestRegisterMetrics:
    """Tests for registration."""

    def test_disabled(self, registry: CollectorRegistry) -> None:
        """Nothing is registered when metrics are off."""
        cache: TieredCache[str] = TieredCache()

        assert register_metrics(cache, registry=registry, enabled=False) is None
        assert registry.get_sample_value("taxoslug_cache_hits_total") is None

    def test_enabled(self, registry: CollectorRegistry) -> None:
        """The collector is returned and scraped."""
        cache: TieredCache[str] = TieredCache()

        collector = register_metrics(cache, registry=registry)

        assert isinstance(collector, TaxonomyMetricsCollector)
        assert registry.get_sample_value("taxoslug_cache_hits_total") == 0.0

    def test_default_follows_settings(
        self, registry: CollectorRegistry, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Without ``enabled`` the enable_metrics setting decides."""
        monkeypatch.setattr(
            "taxoslug.observability.metrics.get_settings",
            lambda: Settings(enable_metrics=False),
        )
        cache: TieredCache[str] = TieredCache()

        assert register_metrics(cache, registry=registry) is None
        assert registry.get_sample_value("taxoslug_cache_hits_total") is None


class TestCollect:
    """Values are read from the cache and resolver at scrape time."""

    @pytest.mark.asyncio
    async def test_cache_counters(self, registry: CollectorRegistry) -> None:
        """Hits, misses, hit rate and entries follow cache activity."""
        cache: TieredCache[str] = TieredCache()
        register_metrics(cache, registry=registry)

        await cache.get("missing")
        await cache.set("k", "v")
        await cache.get("k")
        await cache.get("k")
        await cache.get("k")

        assert registry.get_sample_value("taxoslug_cache_hits_total") == 3.0
        assert registry.get_sample_value("taxoslug_cache_misses_total") == 1.0
        assert registry.get_sample_value("taxoslug_cache_hit_rate") == 0.75
        assert registry.get_sample_value("taxoslug_cache_entries") == 1.0

    @pytest.mark.asyncio
    async def test_fetch_timings(self, registry: CollectorRegistry) -> None:
        """Fetch outcomes and durations are exported."""
        cache: TieredCache[TaxonomyMapping] = TieredCache()
        resolver = TaxonomyResolver(
            fetch=AsyncMock(return_value={"names": ["Cardiology"]}),
            cache=cache,
            retry_policy=RetryPolicy(max_attempts=0),
        )
        register_metrics(cache, resolver, registry=registry)

        assert registry.get_sample_value(
            "taxoslug_taxonomy_last_fetch_duration_seconds"
        ) is None

        await resolver.ensure_loaded()

        assert registry.get_sample_value(
            "taxoslug_taxonomy_fetches_total", {"outcome": "success"}
        ) == 1.0
        assert registry.get_sample_value(
            "taxoslug_taxonomy_fetches_total", {"outcome": "failure"}
        ) == 0.0
        assert registry.get_sample_value("taxoslug_taxonomy_last_fetch_duration_seconds") >= 0
