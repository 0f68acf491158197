"""Taxonomy resolution backed by the tiered cache.

The resolver owns the name <-> slug mapping for one taxonomy. It reads the
mapping from a :class:`TieredCache` and, on a miss, populates it from an
injected remote fetch wrapped in the retry executor.

Population is tracked per cache key:

    IDLE -> FETCHING -> READY
                     -> FAILED   (next ensure_loaded() starts over)

At most one population runs per key. Concurrent callers await the same
task, and a caller that stops waiting (for example through its own
timeout) does not cancel it. Failures are never cached.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from taxoslug.cache.keys import CacheKeys
from taxoslug.cache.tiered import TieredCache
from taxoslug.core.errors import (
    ErrorDescriptor,
    SlugCollisionError,
    TaxonomyFetchError,
    TaxoslugError,
    classify,
)
from taxoslug.core.retry import RetryPolicy, with_retry
from taxoslug.core.slugs import to_name, to_slug
from taxoslug.observability.logging import LogContext

logger = logging.getLogger(__name__)

FetchTaxonomy = Callable[[], Awaitable[Mapping[str, Any]]]


class ResolverState(str, Enum):
    """Population state for one cache key."""

    IDLE = "idle"
    FETCHING = "fetching"
    READY = "ready"
    FAILED = "failed"


class TaxonomyMapping(BaseModel):
    """Resolved taxonomy with its bidirectional slug mapping.

    Immutable; a refresh replaces the whole mapping.
    """

    model_config = ConfigDict(frozen=True)

    names: tuple[str, ...] = ()
    counts: dict[str, int] = Field(default_factory=dict)
    name_to_slug: dict[str, str] = Field(default_factory=dict)
    slug_to_name: dict[str, str] = Field(default_factory=dict)

    def slug_for(self, name: str) -> str | None:
        return self.name_to_slug.get(name)

    def name_for(self, slug: str) -> str | None:
        return self.slug_to_name.get(slug)

    def has_name(self, name: str) -> bool:
        return name in self.name_to_slug

    def has_slug(self, slug: str) -> bool:
        return slug in self.slug_to_name

    def count_for(self, name: str) -> int:
        return self.counts.get(name, 0)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> TaxonomyMapping:
        return cls.model_validate(data)


def build_mapping(names: Iterable[str], counts: Mapping[str, int] | None = None) -> TaxonomyMapping:
    """Build a :class:`TaxonomyMapping`, slugging each name once.

    Repeated names keep their first position. Negative or missing counts
    become 0.

    Raises:
        SlugCollisionError: If two distinct names produce the same slug
    """
    counts = counts or {}
    ordered: list[str] = []
    name_to_slug: dict[str, str] = {}
    slug_to_name: dict[str, str] = {}

    for name in names:
        if name in name_to_slug:
            continue
        slug = to_slug(name)
        existing = slug_to_name.get(slug)
        if existing is not None:
            raise SlugCollisionError(slug, existing, name)
        ordered.append(name)
        name_to_slug[name] = slug
        slug_to_name[slug] = name

    return TaxonomyMapping(
        names=tuple(ordered),
        counts={name: max(int(counts.get(name, 0) or 0), 0) for name in ordered},
        name_to_slug=name_to_slug,
        slug_to_name=slug_to_name,
    )


def _mapping_from_payload(payload: Mapping[str, Any]) -> TaxonomyMapping:
    names = payload.get("names") or []
    counts = payload.get("counts") or {}
    return build_mapping(names, counts)


@dataclass(frozen=True)
class FetchTimings:
    """Remote fetch durations for an external metrics collector to poll."""

    fetches: int = 0
    failures: int = 0
    last_duration: float | None = None
    total_duration: float = 0.0

    @property
    def average_duration(self) -> float:
        completed = self.fetches + self.failures
        return self.total_duration / completed if completed else 0.0


class TaxonomyResolver:
    """Resolve taxonomy names and slugs through a tiered cache.

    Args:
        fetch: Zero-argument coroutine returning ``{"names": [...], "counts": {...}}``
        cache: Cache holding :class:`TaxonomyMapping` values
        retry_policy: Retry schedule for ``fetch``
        key: Cache key of the taxonomy mapping
        sleep: Backoff sleep, injectable for tests
    """

    def __init__(
        self,
        fetch: FetchTaxonomy,
        cache: TieredCache[TaxonomyMapping],
        retry_policy: RetryPolicy | None = None,
        key: str | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.fetch = fetch
        self.cache = cache
        self.retry_policy = retry_policy or RetryPolicy()
        self.key = key or CacheKeys.taxonomy()
        self._sleep = sleep
        self._inflight: dict[str, asyncio.Task[TaxonomyMapping]] = {}
        self._states: dict[str, ResolverState] = {}
        self._closed = False
        self._fetches = 0
        self._failures = 0
        self._last_duration: float | None = None
        self._total_duration = 0.0

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    def state(self, key: str | None = None) -> ResolverState:
        return self._states.get(key or self.key, ResolverState.IDLE)

    async def ensure_loaded(self) -> TaxonomyMapping:
        """Return the taxonomy mapping, fetching it on a cache miss.

        Raises:
            TaxoslugError: If population failed; every concurrent caller
                receives the same error
        """
        cached = await self.cache.get(self.key)
        if cached is not None:
            self._states[self.key] = ResolverState.READY
            return cached

        # Shielded so an abandoned waiter leaves the shared population running.
        return await asyncio.shield(self._start_population())

    def _start_population(self) -> asyncio.Task[TaxonomyMapping]:
        task = self._inflight.get(self.key)
        if task is None:
            task = asyncio.create_task(self._populate(self.key))
            self._inflight[self.key] = task
            task.add_done_callback(self._population_done)
        return task

    async def _populate(self, key: str) -> TaxonomyMapping:
        try:
            with LogContext(cache_key=key, operation="populate"):
                return await self._populate_in_context(key)
        except asyncio.CancelledError:
            if self._states.get(key) is ResolverState.FETCHING:
                self._states[key] = ResolverState.IDLE
            raise
        finally:
            if self._inflight.get(key) is asyncio.current_task():
                del self._inflight[key]

    async def _populate_in_context(self, key: str) -> TaxonomyMapping:
        self._states[key] = ResolverState.FETCHING
        logger.info("Fetching taxonomy for %s", key)
        started = time.perf_counter()
        policy = self.retry_policy

        try:
            payload = await with_retry(
                self.fetch,
                policy.max_attempts,
                policy.base_delay,
                max_jitter=policy.max_jitter,
                sleep=self._sleep,
            )
            mapping = _mapping_from_payload(payload)
        except TaxoslugError:
            self._record_fetch(started, failed=True)
            self._states[key] = ResolverState.FAILED
            raise
        except Exception as e:
            self._record_fetch(started, failed=True)
            self._states[key] = ResolverState.FAILED
            descriptor = classify(e)
            logger.error("Taxonomy fetch for %s failed (%s): %s", key, descriptor.kind.value, e)
            raise TaxonomyFetchError(descriptor) from e

        self._record_fetch(started, failed=False)
        await self.cache.set(key, mapping)
        self._states[key] = ResolverState.READY
        logger.info("Loaded taxonomy for %s (%d names)", key, len(mapping.names))
        return mapping

    def _population_done(self, task: asyncio.Task[TaxonomyMapping]) -> None:
        # Covers tasks cancelled before their first step, which skip _populate's cleanup.
        for key, inflight in list(self._inflight.items()):
            if inflight is task:
                del self._inflight[key]
        if task.cancelled():
            return
        # Retrieve the exception so it is not reported as unhandled when
        # every waiter gave up before the population finished.
        error = task.exception()
        if error is not None:
            logger.debug("Taxonomy population ended with %s", type(error).__name__)

    def _record_fetch(self, started: float, failed: bool) -> None:
        duration = time.perf_counter() - started
        self._last_duration = duration
        self._total_duration += duration
        if failed:
            self._failures += 1
        else:
            self._fetches += 1

    def timings(self) -> FetchTimings:
        return FetchTimings(
            fetches=self._fetches,
            failures=self._failures,
            last_duration=self._last_duration,
            total_duration=self._total_duration,
        )

    async def refresh(self) -> TaxonomyMapping:
        """Drop the cached mapping from both tiers and load it again."""
        await self.cache.invalidate(self.key)
        self._states[self.key] = ResolverState.IDLE
        return await self.ensure_loaded()

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    async def current_mapping(self) -> TaxonomyMapping | None:
        """Return the cached mapping without fetching.

        On a cold cache a background population is started so later
        lookups can use the fetched mapping.
        """
        mapping = await self.cache.get(self.key)
        if mapping is None:
            self._start_warmup()
        return mapping

    def _start_warmup(self) -> None:
        # The caller has already missed the cache, so populate directly.
        if self._closed or self.key in self._inflight:
            return
        self._start_population().add_done_callback(self._warmup_done)

    def _warmup_done(self, task: asyncio.Task[TaxonomyMapping]) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            descriptor: ErrorDescriptor = classify(error)
            logger.warning("Background taxonomy load failed: %s", descriptor.message)

    async def _mapping(self, wait: bool) -> TaxonomyMapping | None:
        if wait:
            return await self.ensure_loaded()
        return await self.current_mapping()

    async def resolve_slug(self, name: str, *, wait: bool = False) -> str:
        """Return the slug for ``name``, falling back to :func:`to_slug`.

        Without ``wait`` the lookup never blocks on a remote fetch.
        """
        mapping = await self._mapping(wait)
        if mapping is not None:
            slug = mapping.slug_for(name)
            if slug:
                return slug
        return to_slug(name)

    async def resolve_name(self, slug: str, *, wait: bool = False) -> str:
        """Return the display name for ``slug``, falling back to :func:`to_name`."""
        mapping = await self._mapping(wait)
        if mapping is not None:
            name = mapping.name_for(slug)
            if name:
                return name
        return to_name(slug)

    async def has_name(self, name: str) -> bool:
        mapping = await self.current_mapping()
        return mapping is not None and mapping.has_name(name)

    async def has_slug(self, slug: str) -> bool:
        mapping = await self.current_mapping()
        return mapping is not None and mapping.has_slug(slug)

    async def count_for(self, name: str) -> int:
        mapping = await self.current_mapping()
        return mapping.count_for(name) if mapping is not None else 0

    async def close(self) -> None:
        """Cancel in-flight populations and stop background warm-ups.

        Explicit ``ensure_loaded()`` calls still work after close; lookups
        no longer start warm-ups.
        """
        self._closed = True
        tasks = list(self._inflight.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._inflight.clear()
