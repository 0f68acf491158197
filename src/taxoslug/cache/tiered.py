"""Two-tier cache: an in-process map in front of an optional durable store.

Each tier is stamped and expires on its own:
- in-process entries live for ``memory_ttl`` (or a per-``set`` override)
- durable envelopes live for ``durable_ttl``, which is normally longer

A read that misses in process falls through to the durable tier. A fresh
durable envelope is copied back into process memory with a new
``memory_ttl`` stamp; the durable timestamp is never carried over.

Expiration is lazy: stale entries are evicted when they are next read.

The durable tier is an accelerator only. Every durable failure is logged and
swallowed, so a broken backend degrades the cache to in-process behaviour.

Example:
    cache: TieredCache[TaxonomyMapping] = TieredCache(
        durable=MemoryDurableStore(),
        dump=TaxonomyMapping.to_dict,
        load=TaxonomyMapping.from_dict,
    )
    await cache.set(CacheKeys.taxonomy(), mapping)
    mapping = await cache.get(CacheKeys.taxonomy())
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

import orjson

from taxoslug.cache.durable import DurableStore
from taxoslug.cache.keys import CacheKeys

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MEMORY_TTL = 5 * 60.0  # seconds
DEFAULT_DURABLE_TTL = 30 * 60.0  # seconds


def _identity(value: Any) -> Any:
    return value


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """A cached value with its creation stamp and lifetime."""

    value: T
    created_at: float
    ttl: float

    def is_live(self, now: float) -> bool:
        return now - self.created_at < self.ttl


@dataclass(frozen=True)
class CacheStats:
    """Snapshot of cache counters."""

    hits: int = 0
    misses: int = 0
    entries: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": self.hit_rate,
            "entries": self.entries,
        }


class TieredCache(Generic[T]):
    """Keyed TTL cache with an optional durable side-store.

    Args:
        durable: Durable store, or None for an in-process-only cache
        memory_ttl: Default in-process lifetime in seconds
        durable_ttl: Durable envelope lifetime in seconds
        clock: Wall-clock source in seconds; durable stamps must survive restarts
        dump: Converts a value to JSON-compatible data for the durable tier
        load: Rebuilds a value from the data produced by ``dump``
        index_key: Durable key listing every key written, so ``clear()`` reaches
            entries written by earlier processes
    """

    def __init__(
        self,
        durable: DurableStore | None = None,
        memory_ttl: float = DEFAULT_MEMORY_TTL,
        durable_ttl: float = DEFAULT_DURABLE_TTL,
        clock: Callable[[], float] = time.time,
        dump: Callable[[T], Any] = _identity,
        load: Callable[[Any], T] = _identity,
        index_key: str | None = None,
    ):
        self.durable = durable
        self.memory_ttl = memory_ttl
        self.durable_ttl = durable_ttl
        self._clock = clock
        self._dump = dump
        self._load = load
        self.index_key = index_key or CacheKeys.index()
        self._entries: dict[str, CacheEntry[T]] = {}
        self._durable_keys: set[str] = set()
        self._hits = 0
        self._misses = 0

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def get(self, key: str) -> T | None:
        """Return the cached value for ``key`` or None.

        Counts a hit when either tier satisfies the read. A read served by
        the durable tier counts the in-process miss as well.
        """
        now = self._clock()
        entry = self._entries.get(key)
        if entry is not None and entry.is_live(now):
            self._hits += 1
            logger.debug("Cache HIT: %s", key)
            return entry.value

        if entry is not None:
            del self._entries[key]
        self._misses += 1
        logger.debug("Cache MISS: %s", key)

        value = await self._load_durable(key, now)
        if value is None:
            return None

        self._entries[key] = CacheEntry(value=value, created_at=self._clock(), ttl=self.memory_ttl)
        self._hits += 1
        logger.debug("Cache HIT (durable): %s", key)
        return value

    def peek(self, key: str) -> T | None:
        """Return a live in-process value without touching counters or the durable tier."""
        entry = self._entries.get(key)
        if entry is None or not entry.is_live(self._clock()):
            return None
        return entry.value

    async def _load_durable(self, key: str, now: float) -> T | None:
        if self.durable is None:
            return None

        durable_key = CacheKeys.durable(key)
        try:
            blob = await self.durable.load(durable_key)
        except Exception as e:
            logger.warning("Failed to read durable cache entry %s: %s", key, e)
            return None

        if blob is None:
            return None

        try:
            envelope = orjson.loads(blob)
            timestamp = float(envelope["timestamp"])
            data = envelope["data"]
        except (orjson.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            logger.warning("Discarding unreadable durable cache entry %s: %s", key, e)
            await self._clear_durable(key)
            return None

        if now - timestamp >= self.durable_ttl:
            logger.debug("Durable cache entry expired: %s", key)
            await self._clear_durable(key)
            return None

        try:
            return self._load(data)
        except Exception as e:
            logger.warning("Discarding undecodable durable cache entry %s: %s", key, e)
            await self._clear_durable(key)
            return None

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def set(self, key: str, value: T, ttl: float | None = None) -> None:
        """Cache ``value`` in process and, best effort, in the durable tier."""
        now = self._clock()
        self._entries[key] = CacheEntry(
            value=value,
            created_at=now,
            ttl=ttl if ttl is not None else self.memory_ttl,
        )

        if self.durable is None:
            return

        try:
            blob = orjson.dumps({"data": self._dump(value), "timestamp": now})
            await self.durable.save(CacheKeys.durable(key), blob)
            self._durable_keys.add(key)
            index = await self._read_index()
            if key not in index:
                await self._write_index(index | {key})
        except Exception as e:
            logger.warning("Failed to save durable cache entry %s: %s", key, e)

    async def invalidate(self, key: str) -> None:
        """Drop ``key`` from both tiers."""
        self._entries.pop(key, None)
        await self._clear_durable(key)

    async def clear(self) -> None:
        """Drop every entry from both tiers.

        The durable index is consulted, so entries written by an earlier
        process sharing the store are removed as well.
        """
        keys = set(self._entries) | self._durable_keys
        self._entries.clear()
        self._durable_keys.clear()
        if self.durable is None:
            return

        try:
            keys |= await self._read_index()
        except Exception as e:
            logger.warning("Failed to read durable cache index %s: %s", self.index_key, e)

        for key in keys:
            await self._clear_entry(key)
        try:
            await self.durable.clear(self.index_key)
        except Exception as e:
            logger.warning("Failed to clear durable cache index %s: %s", self.index_key, e)

    async def _clear_durable(self, key: str) -> None:
        self._durable_keys.discard(key)
        if self.durable is None:
            return
        await self._clear_entry(key)
        try:
            index = await self._read_index()
            if key in index:
                await self._write_index(index - {key})
        except Exception as e:
            logger.warning("Failed to update durable cache index %s: %s", self.index_key, e)

    async def _clear_entry(self, key: str) -> None:
        assert self.durable is not None
        try:
            await self.durable.clear(CacheKeys.durable(key))
        except Exception as e:
            logger.warning("Failed to clear durable cache entry %s: %s", key, e)

    async def _read_index(self) -> set[str]:
        assert self.durable is not None
        blob = await self.durable.load(self.index_key)
        if blob is None:
            return set()
        try:
            keys = orjson.loads(blob)
        except orjson.JSONDecodeError:
            logger.warning("Discarding unreadable durable cache index %s", self.index_key)
            return set()
        if not isinstance(keys, list):
            return set()
        return {key for key in keys if isinstance(key, str)}

    async def _write_index(self, keys: set[str]) -> None:
        assert self.durable is not None
        if keys:
            await self.durable.save(self.index_key, orjson.dumps(sorted(keys)))
        else:
            await self.durable.clear(self.index_key)

    # -------------------------------------------------------------------------
    # Stats
    # -------------------------------------------------------------------------

    def stats(self) -> CacheStats:
        return CacheStats(hits=self._hits, misses=self._misses, entries=len(self._entries))

    def reset_stats(self) -> None:
        self._hits = 0
        self._misses = 0

    def __len__(self) -> int:
        return len(self._entries)
