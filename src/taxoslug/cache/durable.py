"""Durable tier backends for the tiered cache.

A durable store keeps serialized cache envelopes outside process memory so
a restarted process can warm its in-process tier without a remote fetch.
The tiered cache tolerates every failure raised from here, so backends
report problems by raising rather than by returning sentinels.

Backends:
- MemoryDurableStore: dict-backed, for tests and single-process use
- RedisDurableStore: redis-py async client, SETEX bounded by the durable TTL
- FileDurableStore: one file per key under a base directory
"""

from __future__ import annotations

import hashlib
import logging
import math
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, cast, runtime_checkable

import aiofiles  # type: ignore[import-untyped]
import aiofiles.os  # type: ignore[import-untyped]
import redis.asyncio as redis

if TYPE_CHECKING:
    from redis.asyncio import Redis

    from taxoslug.config import Settings

logger = logging.getLogger(__name__)


@runtime_checkable
class DurableStore(Protocol):
    """Key-value persistence used as the cache's durable tier."""

    async def load(self, key: str) -> bytes | None:
        """Return the stored blob or None."""
        ...

    async def save(self, key: str, blob: bytes) -> None:
        """Store ``blob`` under ``key``, replacing any previous value."""
        ...

    async def clear(self, key: str) -> None:
        """Remove ``key``; missing keys are not an error."""
        ...


class MemoryDurableStore:
    """Durable store kept in a dict."""

    def __init__(self) -> None:
        self._blobs: dict[str, bytes] = {}

    async def load(self, key: str) -> bytes | None:
        return self._blobs.get(key)

    async def save(self, key: str, blob: bytes) -> None:
        self._blobs[key] = blob

    async def clear(self, key: str) -> None:
        self._blobs.pop(key, None)

    def __len__(self) -> int:
        return len(self._blobs)


class RedisDurableStore:
    """Durable store backed by Redis.

    The cache checks freshness from the envelope timestamp; the Redis
    expiry only bounds how long abandoned keys linger.
    """

    def __init__(self, client: Redis, ttl: float | None = None):
        self.client = client
        self.ttl = ttl

    @classmethod
    def from_url(cls, url: str, ttl: float | None = None) -> RedisDurableStore:
        client = redis.from_url(  # type: ignore[no-untyped-call]
            url,
            decode_responses=False,  # envelopes are bytes
        )
        return cls(client, ttl=ttl)

    async def load(self, key: str) -> bytes | None:
        return cast(bytes | None, await self.client.get(key))

    async def save(self, key: str, blob: bytes) -> None:
        if self.ttl:
            await self.client.setex(key, math.ceil(self.ttl), blob)
        else:
            await self.client.set(key, blob)

    async def clear(self, key: str) -> None:
        await self.client.delete(key)

    async def close(self) -> None:
        """Close Redis connections."""
        await self.client.aclose()


class FileDurableStore:
    """Durable store writing one file per key.

    File names are the SHA-256 of the key, so any key is a safe path.
    """

    def __init__(self, base_path: str | Path = "/var/lib/taxoslug/cache"):
        self.base_path = Path(base_path)

    def _path_for(self, key: str) -> Path:
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return self.base_path / f"{digest}.json"

    async def load(self, key: str) -> bytes | None:
        path = self._path_for(key)
        if not await aiofiles.os.path.exists(path):
            return None

        async with aiofiles.open(path, "rb") as f:
            content = await f.read()

        return cast(bytes, content)

    async def save(self, key: str, blob: bytes) -> None:
        if not await aiofiles.os.path.exists(self.base_path):
            await aiofiles.os.makedirs(self.base_path, exist_ok=True)

        path = self._path_for(key)
        tmp_path = path.with_suffix(".tmp")
        async with aiofiles.open(tmp_path, "wb") as f:
            await f.write(blob)
        await aiofiles.os.replace(tmp_path, path)
        logger.debug("Saved durable entry for %s at %s (%d bytes)", key, path, len(blob))

    async def clear(self, key: str) -> None:
        path = self._path_for(key)
        if await aiofiles.os.path.exists(path):
            await aiofiles.os.remove(path)


def create_durable_store(settings: Settings) -> DurableStore | None:
    """Build the durable store selected by ``settings.durable_backend``.

    Returns None for the "none" backend, which leaves the cache in-process only.
    """
    backend = settings.durable_backend.lower()
    if backend == "none":
        return None
    if backend == "memory":
        return MemoryDurableStore()
    if backend == "redis":
        if not settings.redis_url:
            raise ValueError("REDIS_URL is required for durable_backend='redis'")
        return RedisDurableStore.from_url(settings.redis_url, ttl=settings.durable_ttl)
    if backend == "file":
        return FileDurableStore(base_path=settings.durable_path)

    raise ValueError("Unsupported durable_backend. Supported values: none, memory, redis, file.")
