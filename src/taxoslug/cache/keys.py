"""Cache key schema for taxoslug.

Key format: {prefix}:{object_class}[:{variant}]

Where:
- prefix: "taxoslug" by default (namespace shared with other Redis users)
- object_class: "taxonomy" for the resolved taxonomy mapping, "index" for
  the durable list of keys a cache has written
- variant: "durable" for the copy kept in the durable tier
"""

from __future__ import annotations


class CacheKeys:
    """Cache key generator following consistent naming convention."""

    PREFIX = "taxoslug"

    @classmethod
    def taxonomy(cls, prefix: str | None = None) -> str:
        """Key for the resolved taxonomy mapping."""
        return f"{prefix or cls.PREFIX}:taxonomy"

    @classmethod
    def durable(cls, key: str) -> str:
        """Key under which ``key`` is kept in the durable tier."""
        return f"{key}:durable"

    @classmethod
    def index(cls, prefix: str | None = None) -> str:
        """Durable key listing every cache key written under ``prefix``."""
        return f"{prefix or cls.PREFIX}:index"

    @classmethod
    def parse_key(cls, key: str) -> dict[str, str] | None:
        """Parse a cache key into its components.

        Returns None if the key doesn't have at least a prefix and an object class.
        """
        parts = key.split(":")
        if len(parts) < 2 or not all(parts):
            return None

        return {
            "prefix": parts[0],
            "object_class": parts[1],
            "variant": parts[2] if len(parts) > 2 else "",
        }
