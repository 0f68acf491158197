"""Explicit construction and teardown of the taxonomy cache stack.

Build one runtime at application start and pass ``runtime.resolver`` (or
``runtime.cache``) to whatever needs it:

    runtime = TaxonomyRuntime.create(fetch=HttpTaxonomyFetcher(url), observe=True)
    slug = await runtime.resolver.resolve_slug("Internal Medicine")
    ...
    await runtime.close()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from prometheus_client import REGISTRY, CollectorRegistry

from taxoslug.cache.durable import DurableStore, create_durable_store
from taxoslug.cache.keys import CacheKeys
from taxoslug.cache.tiered import TieredCache
from taxoslug.clients.http import HttpTaxonomyFetcher
from taxoslug.config import Settings, get_settings
from taxoslug.core.resolver import FetchTaxonomy, TaxonomyMapping, TaxonomyResolver
from taxoslug.core.retry import RetryPolicy
from taxoslug.observability.logging import configure_logging
from taxoslug.observability.metrics import TaxonomyMetricsCollector, register_metrics

logger = logging.getLogger(__name__)


@dataclass
class TaxonomyRuntime:
    """Durable store, cache and resolver wired from one :class:`Settings`."""

    settings: Settings
    durable: DurableStore | None
    cache: TieredCache[TaxonomyMapping]
    resolver: TaxonomyResolver
    registry: CollectorRegistry = REGISTRY
    metrics: TaxonomyMetricsCollector | None = None

    @classmethod
    def create(
        cls,
        fetch: FetchTaxonomy | None = None,
        settings: Settings | None = None,
        durable: DurableStore | None = None,
        observe: bool = False,
        registry: CollectorRegistry = REGISTRY,
    ) -> TaxonomyRuntime:
        """Build a runtime.

        Args:
            fetch: Remote-fetch collaborator; defaults to an HTTP fetcher for
                ``settings.taxonomy_url``
            settings: Configuration; defaults to the environment
            durable: Durable store overriding ``settings.durable_backend``
            observe: Configure logging from ``log_json`` / ``log_level`` and
                register metrics when ``enable_metrics`` is set
            registry: Prometheus registry for the metrics collector
        """
        settings = settings or get_settings()

        if observe:
            configure_logging(json_format=settings.log_json, level=settings.log_level)

        if fetch is None:
            if not settings.taxonomy_url:
                raise ValueError("TAXOSLUG_TAXONOMY_URL is required when no fetch is given")
            fetch = HttpTaxonomyFetcher(settings.taxonomy_url, timeout=settings.fetch_timeout)

        if durable is None:
            durable = create_durable_store(settings)

        cache: TieredCache[TaxonomyMapping] = TieredCache(
            durable=durable,
            memory_ttl=settings.memory_ttl,
            durable_ttl=settings.durable_ttl,
            dump=TaxonomyMapping.to_dict,
            load=TaxonomyMapping.from_dict,
            index_key=CacheKeys.index(settings.key_prefix),
        )
        resolver = TaxonomyResolver(
            fetch=fetch,
            cache=cache,
            retry_policy=RetryPolicy.from_settings(settings),
            key=CacheKeys.taxonomy(settings.key_prefix),
        )

        metrics = None
        if observe:
            metrics = register_metrics(
                cache, resolver, registry=registry, enabled=settings.enable_metrics
            )

        logger.info(
            "Taxonomy runtime created (durable=%s, memory_ttl=%ss, durable_ttl=%ss)",
            type(durable).__name__ if durable is not None else "none",
            settings.memory_ttl,
            settings.durable_ttl,
        )
        return cls(
            settings=settings,
            durable=durable,
            cache=cache,
            resolver=resolver,
            registry=registry,
            metrics=metrics,
        )

    async def close(self) -> None:
        """Stop background work and release backend connections.

        In-flight populations are cancelled before the fetcher and durable
        store close. Cached data is kept; call ``cache.clear()`` first to drop it.
        """
        await self.resolver.close()

        if self.metrics is not None:
            self.registry.unregister(self.metrics)
            self.metrics = None

        fetch_close = getattr(self.resolver.fetch, "close", None)
        if fetch_close is not None:
            await fetch_close()

        durable_close = getattr(self.durable, "close", None)
        if durable_close is not None:
            await durable_close()

        logger.info("Taxonomy runtime closed")
