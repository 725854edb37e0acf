"""APScheduler-based scheduler for periodic replica synchronization."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from catalogsync.exceptions import SyncUnavailable
from catalogsync.replica.session import SyncSession

logger = logging.getLogger(__name__)


class SyncScheduler:
    """Schedules periodic runs of ``SyncSession.synchronize`` using AsyncIOScheduler."""

    def __init__(self) -> None:
        self._scheduler = AsyncIOScheduler()
        self._started = False

    @property
    def running(self) -> bool:
        return self._started

    def start(self) -> None:
        """Start the underlying scheduler if not already started."""
        if not self._started:
            self._scheduler.start(paused=False)
            self._started = True

    def shutdown(self, *, wait: bool = True) -> None:
        """Shut down the scheduler."""
        if self._started:
            self._scheduler.shutdown(wait=wait)
            self._started = False

    def schedule_sync(
        self,
        session: SyncSession,
        *,
        interval: timedelta = timedelta(minutes=5),
        job_id: Optional[str] = "replica-sync",
        replace_existing: bool = True,
    ) -> None:
        """Schedule periodic execution of ``session.synchronize()``.

        A run that cannot reach the remote catalog is logged and skipped; the
        replica keeps its previous contents until a later run succeeds.
        """

        async def _job() -> None:
            try:
                await session.synchronize()
            except SyncUnavailable as exc:
                logger.warning("Scheduled replica sync failed: %s", exc)

        trigger = IntervalTrigger(seconds=int(interval.total_seconds()))
        self._scheduler.add_job(
            _job,
            trigger=trigger,
            id=job_id,
            replace_existing=replace_existing,
            max_instances=1,
            coalesce=True,
        )
