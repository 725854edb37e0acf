"""Coordinated eviction of every cache the client keeps."""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, List, Tuple

from catalogsync.exceptions import EvictionPartialFailure
from catalogsync.images.cache import ImageCache
from catalogsync.replica.store import ReplicaStore
from catalogsync.storage.cache_store import SearchCacheStore

logger = logging.getLogger(__name__)


class CacheEvictionManager:
    """Clears images, subscriptions, replicated data and the search cache.

    Steps run in a fixed order and each is attempted even if an earlier one
    failed. There is no rollback across stores.
    """

    def __init__(self, images: ImageCache, replica: ReplicaStore, cache: SearchCacheStore) -> None:
        self._images = images
        self._replica = replica
        self._cache = cache

    async def _clear_images(self) -> None:
        self._images.clear_memory_cache()
        self._images.clear_disk_cache()

    async def _remove_subscriptions(self) -> None:
        await self._replica.subscriptions.update(lambda subs: subs.remove_all())

    async def clear_all(self) -> None:
        """Run every eviction step; raise ``EvictionPartialFailure`` if any failed.

        Clearing the search cache notifies its listeners, which reconcile the
        subscription to the empty interest set.
        """
        steps: List[Tuple[str, Callable[[], Awaitable[object]]]] = [
            ("images", self._clear_images),
            ("subscriptions", self._remove_subscriptions),
            ("replica", self._replica.delete_all),
            ("search_cache", self._cache.clear),
        ]
        failures: List[Tuple[str, BaseException]] = []
        for name, step in steps:
            try:
                await step()
            except Exception as exc:
                logger.error("Cache eviction step %r failed", name, exc_info=True)
                failures.append((name, exc))
        if failures:
            raise EvictionPartialFailure(failures)
        logger.info("All caches cleared")
