"""HTTP client for the remote catalog service.

Two calls are used: the full-text search function (ranking authority for
searches) and a bulk query by identifiers used to materialize the replica.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

import httpx

from catalogsync.exceptions import SearchError, SyncUnavailable

logger = logging.getLogger(__name__)


def _records(data: Any) -> Optional[List[Dict[str, Any]]]:
    if isinstance(data, dict):
        data = data.get("result")
    if data is None:
        return []
    if not isinstance(data, list):
        return None
    return [r for r in data if isinstance(r, dict)]


class CatalogClient:
    def __init__(
        self,
        *,
        base_url: str,
        token: Optional[str] = None,
        search_path: str = "/functions/searchListings",
        query_path: str = "/listings/query",
        verify_ssl: bool = True,
        timeout: float = 30.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.search_path = search_path
        self.query_path = query_path
        self.verify_ssl = verify_ssl
        self.timeout = timeout

    def _headers(self) -> Dict[str, str]:
        h = {"Accept": "application/json", "Content-Type": "application/json"}
        if self.token:
            h["Authorization"] = f"Bearer {self.token}"
        return h

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            verify=self.verify_ssl,
            headers=self._headers(),
        )

    async def search_listings(
        self, phrase: str, *, page_number: int = 1, page_size: int = 20
    ) -> List[Dict[str, Any]]:
        """Invoke the remote search function and return the raw result items.

        The function answers ``{"result": [...]}`` or ``{"error": "..."}``; an
        error answer, an HTTP failure or an unreadable body raises ``SearchError``.
        """
        payload = {
            "searchPhrase": phrase,
            "pageNumber": int(page_number),
            "pageSize": int(page_size),
        }
        try:
            async with self._client() as client:
                resp = await client.post(self.search_path, json=payload)
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPError as exc:
            raise SearchError(f"Remote search failed: {exc}") from exc
        except ValueError as exc:
            raise SearchError("Remote search returned an invalid response body") from exc

        if isinstance(data, dict) and data.get("error"):
            raise SearchError(str(data["error"]))
        items = _records(data)
        if items is None:
            raise SearchError("Remote search returned an unexpected result shape")
        logger.debug("Remote search %r returned %d items", phrase, len(items))
        return items

    async def fetch_listings(self, ids: Iterable[str]) -> List[Dict[str, Any]]:
        """Fetch the full records for ``ids``. An empty id set makes no request."""
        wanted = sorted({str(i) for i in ids})
        if not wanted:
            return []
        try:
            async with self._client() as client:
                resp = await client.post(self.query_path, json={"ids": wanted})
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPError as exc:
            raise SyncUnavailable(f"Catalog query failed: {exc}") from exc
        except ValueError as exc:
            raise SyncUnavailable("Catalog query returned an invalid response body") from exc

        if isinstance(data, dict) and data.get("error"):
            raise SyncUnavailable(str(data["error"]))
        items = _records(data)
        if items is None:
            raise SyncUnavailable("Catalog query returned an unexpected result shape")
        return items
