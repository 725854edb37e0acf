"""Interest set: every identifier any cached search has returned.

The set is never stored. It is recomputed from the full search cache after
every cache mutation and handed to the synchronizer. Recomputation is
O(total cached ids), which stays small next to the remote catalog.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, FrozenSet, Iterable, Optional

from catalogsync.storage.cache_store import CacheEntry, SearchCacheStore
from catalogsync.sync.synchronizer import SubscriptionSynchronizer

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class InterestSet:
    ids: FrozenSet[str] = frozenset()

    def __len__(self) -> int:
        return len(self.ids)

    def __contains__(self, item: object) -> bool:
        return item in self.ids


def recompute(entries: Iterable[CacheEntry]) -> InterestSet:
    """Fold every entry's result ids into one deduplicated set."""
    ids: set[str] = set()
    for entry in entries:
        ids.update(entry.result_ids)
    return InterestSet(frozenset(ids))


class InterestSetAggregator:
    """Listens to the search cache and drives subscription reconciliation."""

    def __init__(self, store: SearchCacheStore, synchronizer: SubscriptionSynchronizer) -> None:
        self._store = store
        self._synchronizer = synchronizer
        self._detach: Optional[Callable[[], None]] = None
        self._lock = asyncio.Lock()

    @property
    def attached(self) -> bool:
        return self._detach is not None

    def attach(self) -> None:
        if self._detach is None:
            self._detach = self._store.add_listener(self.refresh)

    def detach(self) -> None:
        if self._detach is not None:
            self._detach()
            self._detach = None

    async def current(self) -> InterestSet:
        return recompute(await self._store.all_entries())

    async def refresh(self) -> bool:
        """Recompute from the store and reconcile the subscription.

        Refreshes run one at a time, recompute included, so a slow earlier
        reconciliation can never commit over a newer interest set.
        """
        async with self._lock:
            interest = await self.current()
            logger.debug("Interest set recomputed: %d ids", len(interest))
            return await self._synchronizer.reconcile(interest)
