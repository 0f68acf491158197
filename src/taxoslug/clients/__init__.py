"""Remote taxonomy sources."""

from taxoslug.clients.http import HttpTaxonomyFetcher, TaxonomySourceError

__all__ = ["HttpTaxonomyFetcher", "TaxonomySourceError"]
