"""taxoslug: cached name <-> slug resolution for a remote taxonomy.

Provides:
- Slug codec for display names and URL-safe identifiers
- Error classification and bounded exponential-backoff retry
- Two-tier (in-process + durable) TTL cache
- Taxonomy resolver with single-flight population
"""

from taxoslug.cache import CacheKeys, CacheStats, TieredCache
from taxoslug.core.errors import (
    ErrorDescriptor,
    ErrorKind,
    SlugCollisionError,
    TaxonomyFetchError,
    TaxoslugError,
    classify,
    should_retry,
)
from taxoslug.core.resolver import ResolverState, TaxonomyMapping, TaxonomyResolver
from taxoslug.core.retry import RetryPolicy, with_retry
from taxoslug.core.slugs import is_valid_slug, normalize_slug, to_name, to_slug
from taxoslug.runtime import TaxonomyRuntime

__version__ = "0.1.0"

__all__ = [
    # Slugs
    "to_slug",
    "to_name",
    "is_valid_slug",
    "normalize_slug",
    # Errors and retry
    "ErrorDescriptor",
    "ErrorKind",
    "TaxoslugError",
    "TaxonomyFetchError",
    "SlugCollisionError",
    "classify",
    "should_retry",
    "RetryPolicy",
    "with_retry",
    # Cache
    "CacheKeys",
    "CacheStats",
    "TieredCache",
    # Resolver
    "ResolverState",
    "TaxonomyMapping",
    "TaxonomyResolver",
    "TaxonomyRuntime",
]
