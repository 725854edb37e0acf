"""Persistent search cache: normalized term -> ordered result identifiers.

Entries are write-once. The store is the single source of truth for
"what has already been searched"; everything derived from it (the interest
set, the replica subscription) is recomputed from here after each mutation
via explicit listeners.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable, List, Optional, Set, Tuple

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from catalogsync.exceptions import DuplicateKey, StorageError
from catalogsync.storage.database import session_scope
from catalogsync.storage.models import SearchCacheRecord

logger = logging.getLogger(__name__)

Listener = Callable[[], Awaitable[None]]


@dataclass(frozen=True, slots=True)
class CacheEntry:
    """One cached search: the normalized key and the ids in remote order."""

    key: str
    result_ids: Tuple[str, ...]


def _to_entry(row: SearchCacheRecord) -> CacheEntry:
    return CacheEntry(key=row.search_term, result_ids=tuple(str(i) for i in row.results or []))


class SearchCacheStore:
    """SQLAlchemy-backed search cache with change notification.

    Database work runs in a worker thread so the event loop stays free.
    Writes are serialized with an ``asyncio.Lock``. Listeners run as background
    tasks after each successful ``insert`` or ``clear``; the writer never waits
    for them. Use ``wait_idle()`` to block until they have all finished.
    """

    def __init__(self, factory: sessionmaker[Session]) -> None:
        self._factory = factory
        self._lock = asyncio.Lock()
        self._listeners: List[Listener] = []
        self._pending: Set[asyncio.Task[None]] = set()

    # ----- observers -----

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener``; returns a callable that unregisters it."""
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    def _notify(self) -> None:
        for listener in list(self._listeners):
            task = asyncio.create_task(self._run_listener(listener))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

    async def _run_listener(self, listener: Listener) -> None:
        try:
            await listener()
        except Exception:
            logger.exception("Search cache listener %r failed", listener)

    async def wait_idle(self) -> None:
        """Wait until every pending change notification has been processed."""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    # ----- queries -----

    async def lookup(self, key: str) -> Optional[CacheEntry]:
        """Return the entry for ``key`` or None."""

        def _work() -> Optional[CacheEntry]:
            with session_scope(self._factory) as session:
                row = session.scalar(
                    select(SearchCacheRecord).where(SearchCacheRecord.search_term == key)
                )
                return _to_entry(row) if row is not None else None

        try:
            return await asyncio.to_thread(_work)
        except SQLAlchemyError as exc:
            raise StorageError(f"Search cache lookup failed for {key!r}") from exc

    async def all_entries(self) -> List[CacheEntry]:
        """Snapshot of every entry in insertion order."""

        def _work() -> List[CacheEntry]:
            with session_scope(self._factory) as session:
                rows = session.scalars(select(SearchCacheRecord).order_by(SearchCacheRecord.id))
                return [_to_entry(r) for r in rows]

        try:
            return await asyncio.to_thread(_work)
        except SQLAlchemyError as exc:
            raise StorageError("Search cache scan failed") from exc

    async def count(self) -> int:
        def _work() -> int:
            with session_scope(self._factory) as session:
                return int(
                    session.scalar(select(func.count()).select_from(SearchCacheRecord)) or 0
                )

        return await asyncio.to_thread(_work)

    # ----- mutations -----

    async def insert(self, key: str, result_ids: Iterable[str]) -> CacheEntry:
        """Create the entry for ``key``.

        Raises ``DuplicateKey`` if it already exists; entries are never overwritten.
        """
        ids = [str(i) for i in result_ids]

        def _work() -> None:
            with session_scope(self._factory) as session:
                existing = session.scalar(
                    select(SearchCacheRecord.id).where(SearchCacheRecord.search_term == key)
                )
                if existing is not None:
                    raise DuplicateKey(key)
                session.add(SearchCacheRecord(search_term=key, results=ids))

        async with self._lock:
            try:
                await asyncio.to_thread(_work)
            except IntegrityError as exc:
                # A writer on another connection got there first
                raise DuplicateKey(key) from exc
            except SQLAlchemyError as exc:
                raise StorageError(f"Search cache insert failed for {key!r}") from exc
        logger.debug("Cached %d result ids for %r", len(ids), key)
        self._notify()
        return CacheEntry(key=key, result_ids=tuple(ids))

    async def clear(self) -> int:
        """Remove every entry. Returns the number of entries removed."""

        def _work() -> int:
            with session_scope(self._factory) as session:
                return int(session.execute(delete(SearchCacheRecord)).rowcount or 0)

        async with self._lock:
            try:
                removed = await asyncio.to_thread(_work)
            except SQLAlchemyError as exc:
                raise StorageError("Search cache clear failed") from exc
        logger.info("Search cache cleared (%d entries removed)", removed)
        self._notify()
        return removed
