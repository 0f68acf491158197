"""HTTP taxonomy source.

Fetches the taxonomy from a JSON endpoint with httpx. Both payload shapes
in use are accepted:

    {"specialties": [...], "specialty_counts": {...}}
    {"names": [...], "counts": {...}}

HTTP failures are raised with messages the error classifier recognizes
("503 Service Unavailable", "Network error: ...", "Request timeout ..."),
so the retry executor can tell transient failures from permanent ones.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)


class TaxonomySourceError(Exception):
    """The taxonomy endpoint could not be read."""


class HttpTaxonomyFetcher:
    """Remote-fetch collaborator for :class:`TaxonomyResolver`.

    Instances are awaitable callables: ``payload = await fetcher()``.
    """

    def __init__(
        self,
        url: str,
        timeout: float = 10.0,
        headers: dict[str, str] | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.url = url
        self.timeout = timeout
        self.headers = headers or {}
        self._client = client
        self._owns_client = client is None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def __call__(self) -> dict[str, Any]:
        return await self.fetch()

    async def fetch(self) -> dict[str, Any]:
        """Fetch and normalize the taxonomy payload."""
        client = await self._get_client()
        try:
            response = await client.get(self.url, headers=self.headers)
        except httpx.TimeoutException as e:
            raise TaxonomySourceError(f"Request timeout while reading {self.url}") from e
        except httpx.RequestError as e:
            raise TaxonomySourceError(f"Network error: {e}") from e

        if response.status_code >= 400:
            reason = response.reason_phrase or "HTTP error"
            raise TaxonomySourceError(f"{response.status_code} {reason}")

        try:
            body = response.json()
        except ValueError as e:
            raise TaxonomySourceError(f"Invalid taxonomy payload from {self.url}") from e

        return self.normalize_payload(body)

    @staticmethod
    def normalize_payload(body: Any) -> dict[str, Any]:
        """Map an endpoint response to ``{"names": [...], "counts": {...}}``."""
        if not isinstance(body, dict):
            raise TaxonomySourceError("Invalid taxonomy payload: expected a JSON object")

        names = body.get("names", body.get("specialties")) or []
        counts = body.get("counts", body.get("specialty_counts")) or {}
        if not isinstance(names, list) or not all(isinstance(n, str) for n in names):
            raise TaxonomySourceError("Invalid taxonomy payload: names must be a list of strings")
        if not isinstance(counts, dict):
            raise TaxonomySourceError("Invalid taxonomy payload: counts must be an object")

        logger.debug("Fetched %d taxonomy names", len(names))
        return {"names": names, "counts": counts}

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
