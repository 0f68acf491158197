"""Tests for cache key generation."""

from taxoslug.cache.keys import CacheKeys


class TestCacheKeys:
    """Test cache key generation."""

    def test_taxonomy_key(self) -> None:
        """Taxonomy key has correct format."""
        assert CacheKeys.taxonomy() == "taxoslug:taxonomy"

    def test_taxonomy_key_with_prefix(self) -> None:
        """Taxonomy key honours a custom prefix."""
        assert CacheKeys.taxonomy("clinic") == "clinic:taxonomy"

    def test_durable_key(self) -> None:
        """Durable key is derived from the cache key."""
        assert CacheKeys.durable("taxoslug:taxonomy") == "taxoslug:taxonomy:durable"

    def test_parse_valid_key(self) -> None:
        """Valid key is parsed correctly."""
        result = CacheKeys.parse_key("taxoslug:taxonomy:durable")
        assert result is not None
        assert result["prefix"] == "taxoslug"
        assert result["object_class"] == "taxonomy"
        assert result["variant"] == "durable"

    def test_parse_key_without_variant(self) -> None:
        """Variant is optional."""
        result = CacheKeys.parse_key("taxoslug:taxonomy")
        assert result is not None
        assert result["variant"] == ""

    def test_parse_invalid_key_returns_none(self) -> None:
        """Invalid key returns None."""
        assert CacheKeys.parse_key("invalid") is None
        assert CacheKeys.parse_key("taxoslug::durable") is None

    def test_index_key(self) -> None:
        """Index key shares the taxonomy prefix."""
        assert CacheKeys.index() == "taxoslug:index"
        assert CacheKeys.index("clinic") == "clinic:index"
