"""Keeps the replica's named subscription equal to the interest set."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from catalogsync.exceptions import CatalogSyncError
from catalogsync.replica.store import ReplicaStore
from catalogsync.sync.context import SyncContext

if TYPE_CHECKING:
    from catalogsync.sync.aggregator import InterestSet

logger = logging.getLogger(__name__)


class SubscriptionSynchronizer:
    """Replaces the named subscription filter with "id in interest set".

    The replace call is always issued, even for an unchanged set; the replica
    decides what actually needs transferring. A failed reconciliation is
    logged and the previous filter stays in effect.
    """

    def __init__(
        self, replica: ReplicaStore, context: SyncContext, *, name: str = "listing"
    ) -> None:
        self._replica = replica
        self._context = context
        self.name = name

    async def reconcile(self, interest: InterestSet) -> bool:
        ids = sorted(interest.ids)
        logger.info(
            "Updating subscription %r to %d ids%s",
            self.name,
            len(ids),
            " (offline)" if self._context.offline else "",
        )
        try:
            await self._replica.subscriptions.update(lambda subs: subs.add(self.name, ids))
        except CatalogSyncError as exc:
            logger.warning(
                "Subscription %r not reconciled, keeping previous filter: %s", self.name, exc
            )
            return False
        return True
