"""Offline mode: pause or resume the replica's live sync channel."""

from __future__ import annotations

import logging

from catalogsync.replica.session import SyncSession
from catalogsync.sync.context import SyncContext

logger = logging.getLogger(__name__)


class OfflineModeController:
    """Toggles the live sync channel. Caching is unaffected.

    Replicated records stay readable while offline; searches that miss the
    cache fail because the remote search needs connectivity.
    """

    def __init__(self, session: SyncSession, context: SyncContext) -> None:
        self._session = session
        self._context = context
        if context.offline:
            session.pause()

    @property
    def offline(self) -> bool:
        return self._context.offline

    async def set_offline_mode(self, enabled: bool) -> bool:
        """Pause (True) or resume (False) live sync; returns the new flag.

        Resuming catches up on subscription changes recorded while offline.
        """
        enabled = bool(enabled)
        self._context.offline = enabled
        if enabled:
            self._session.pause()
        else:
            await self._session.resume()
        logger.info("Offline mode %s", "enabled" if enabled else "disabled")
        return enabled

    async def toggle(self) -> bool:
        return await self.set_offline_mode(not self._context.offline)
