"""Cache layer for taxoslug.

Provides a two-tier cache with the cache-aside pattern:
- In-process map of TTL-stamped entries with lazy expiration
- Optional durable tier (memory, Redis or file) with its own, longer TTL
- Hit/miss counters for an external metrics collector to poll
"""

from taxoslug.cache.durable import (
    DurableStore,
    FileDurableStore,
    MemoryDurableStore,
    RedisDurableStore,
    create_durable_store,
)
from taxoslug.cache.keys import CacheKeys
from taxoslug.cache.tiered import CacheEntry, CacheStats, TieredCache

__all__ = [
    # Core cache
    "CacheEntry",
    "CacheKeys",
    "CacheStats",
    "TieredCache",
    # Durable tier
    "DurableStore",
    "FileDurableStore",
    "MemoryDurableStore",
    "RedisDurableStore",
    "create_durable_store",
]
