"""Per-query entry point: serve from the search cache or ask the remote catalog."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Protocol

from catalogsync.exceptions import DuplicateKey, SearchError, StorageError
from catalogsync.replica.listing import Listing, listing_from_payload
from catalogsync.replica.store import ReplicaStore
from catalogsync.search.keys import normalize
from catalogsync.storage.cache_store import SearchCacheStore

logger = logging.getLogger(__name__)


class RemoteSearch(Protocol):
    """The remote full-text search procedure."""

    async def search_listings(
        self, phrase: str, *, page_number: int = 1, page_size: int = 20
    ) -> List[Dict[str, Any]]: ...


class SearchOrchestrator:
    """Memoizes remote searches by exact normalized term.

    This is the only writer of the search cache. A hit is answered from the
    replica and never calls the remote procedure; a miss calls it once, stores
    the returned ids and hands the in-hand items straight back. Replication
    of those ids follows asynchronously through the cache listeners.
    """

    def __init__(
        self,
        cache: SearchCacheStore,
        replica: ReplicaStore,
        remote: RemoteSearch,
        *,
        page_size: int = 20,
    ) -> None:
        self._cache = cache
        self._replica = replica
        self._remote = remote
        self.page_size = page_size

    async def search(self, raw_term: str) -> List[Listing]:
        """Return the listings for ``raw_term``.

        An empty term returns [] without touching the cache or the network.
        Raises ``SearchError`` when a cache miss cannot be served remotely;
        nothing is cached in that case so the search can be retried.
        """
        if raw_term == "":
            return []

        key = normalize(raw_term)
        entry = await self._cache.lookup(key)
        if entry is not None:
            logger.info("Cache hit for %r (%d ids)", key, len(entry.result_ids))
            return await self._replica.query_by_ids(entry.result_ids)

        logger.info("Cache miss for %r; querying remote search", key)
        try:
            items = await self._remote.search_listings(
                raw_term, page_number=1, page_size=self.page_size
            )
        except SearchError:
            logger.error("Remote search failed for %r", raw_term, exc_info=True)
            raise

        listings = [lst for lst in map(listing_from_payload, items) if lst is not None]
        ids = [lst.id for lst in listings]
        logger.info("Remote search for %r returned %d items", raw_term, len(ids))

        # Make the in-hand records readable from the replica right away
        try:
            await self._replica.upsert_listings(items)
        except StorageError:
            logger.warning(
                "Could not write %r results to the replica; subscription will fetch them",
                key,
                exc_info=True,
            )
        try:
            await self._cache.insert(key, ids)
        except DuplicateKey:
            logger.info("Concurrent search already cached %r; returning fresh result", key)
        except StorageError:
            logger.warning("Could not cache results for %r", key, exc_info=True)
        return listings
