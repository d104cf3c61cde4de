"""Async HTTP client for the log API: filter catalog, historical pages, time ranges."""

import logging

import httpx

from log_viewer.errors import CatalogUnavailable, PageFetchFailed
from log_viewer.models import FilterCatalog

logger = logging.getLogger(__name__)

CATALOG_PATH = "/api/filter-type"
HISTORICAL_PATH = "/api/historical-logs"
CUSTOM_LOGS_PATH = "/api/custom-logs"


class LogApiClient:
    """Thin wrapper over httpx.AsyncClient.

    Keeps the last catalog (and its ETag) so that a 304 response can be
    answered from cache. Pass `transport` to route requests elsewhere
    (tests use httpx.MockTransport).
    """

    def __init__(self, base_url: str, timeout: float = 30.0, transport=None):
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
            headers={"Content-Type": "application/json"},
        )
        self._catalog: FilterCatalog | None = None
        self._etag: str | None = None
        self.requests_made = 0

    @property
    def cached_catalog(self) -> FilterCatalog | None:
        return self._catalog

    async def fetch_catalog(self) -> FilterCatalog:
        """GET the filter catalog; 304 reuses the cached one."""
        headers = {"If-None-Match": self._etag} if self._etag else None
        try:
            response = await self._get(CATALOG_PATH, headers=headers)
        except httpx.HTTPError as e:
            raise CatalogUnavailable(f"Error fetching filter options: {e}") from e

        if response.status_code == 304:
            if self._catalog is None:
                raise CatalogUnavailable("Filter options not modified but none cached")
            logger.debug("Filter catalog unchanged (304)")
            return self._catalog

        if response.status_code != 200:
            raise CatalogUnavailable(
                f"Error fetching filter options: HTTP {response.status_code}"
            )

        try:
            catalog = FilterCatalog.from_dict(response.json())
        except (ValueError, AttributeError) as e:
            raise CatalogUnavailable(f"Invalid filter options payload: {e}") from e

        self._catalog = catalog
        self._etag = response.headers.get("ETag")
        return catalog

    async def fetch_historical(self, start: float | None, limit: int) -> list:
        """GET up to `limit` raw records older than `start` (newest page if None)."""
        params = {"limit": limit}
        if start is not None:
            params = {"start": start, "limit": limit}
        return await self._get_records(HISTORICAL_PATH, params)

    async def fetch_custom(self, end: float) -> list:
        """GET raw records newer than `end` for a time-range view."""
        return await self._get_records(CUSTOM_LOGS_PATH, {"end": end})

    async def aclose(self):
        await self._client.aclose()

    async def _get(self, path: str, params=None, headers=None) -> httpx.Response:
        self.requests_made += 1
        return await self._client.get(path, params=params, headers=headers)

    async def _get_records(self, path: str, params: dict) -> list:
        try:
            response = await self._get(path, params=params)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise PageFetchFailed(
                f"Failed to fetch historical logs: HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise PageFetchFailed(f"Failed to fetch historical logs: {e}") from e
        except ValueError as e:
            raise PageFetchFailed(f"Invalid historical logs payload: {e}") from e

        if not isinstance(data, list):
            raise PageFetchFailed("Invalid historical logs payload: expected a list")
        logger.debug("GET %s %s -> %d records", path, params, len(data))
        return data
