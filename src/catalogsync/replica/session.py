"""Live sync channel between the replica and the remote catalog."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from catalogsync.exceptions import SyncUnavailable

if TYPE_CHECKING:
    from catalogsync.replica.store import ReplicaStore

logger = logging.getLogger(__name__)


class SyncSession:
    """Pausable replication session.

    While paused, subscription changes are recorded but nothing is fetched;
    ``synchronize()`` is a no-op. Reads against the replica keep working.
    """

    def __init__(self, store: ReplicaStore) -> None:
        self._store = store
        self._paused = False
        self._pending = False

    @property
    def active(self) -> bool:
        return not self._paused

    @property
    def state(self) -> str:
        return "paused" if self._paused else "active"

    @property
    def pending(self) -> bool:
        """True when subscriptions changed while paused and await replication."""
        return self._pending

    def mark_pending(self) -> None:
        self._pending = True

    def pause(self) -> None:
        if not self._paused:
            self._paused = True
            logger.info("Sync session paused")

    async def resume(self) -> bool:
        """Reactivate the session and catch up on changes made while paused.

        Returns True if the catch-up synchronization ran. A catch-up that
        cannot reach the remote catalog is logged; the scheduler retries later.
        """
        if not self._paused:
            return False
        self._paused = False
        logger.info("Sync session resumed")
        try:
            return await self.synchronize()
        except SyncUnavailable as exc:
            logger.warning("Catch-up sync after resume failed: %s", exc)
            return False

    async def synchronize(self) -> bool:
        """Pull every subscribed record and prune the rest.

        Returns False without doing anything while paused. Raises
        ``SyncUnavailable`` if the remote catalog cannot be reached.
        """
        if self._paused:
            logger.debug("Sync session paused; skipping synchronization")
            return False
        async with self._store.subscription_lock:
            wanted = await self._store.subscriptions.ids()
            payloads = await self._store.fetch_remote(wanted)
            await self._store.replicate(payloads, wanted)
        self._pending = False
        logger.info("Replica synchronized (%d subscribed ids)", len(wanted))
        return True
