"""Device-side replica of the remote catalog.

Only records matching a named subscription filter ("identifier is one of
these ids") are materialized locally. Subscription changes are applied the
way a partial-replication store applies them: while the sync session is
active the matching records are fetched first and then committed together
with the new filter, so a failed fetch leaves the previous filter and data
untouched. While paused the filter is recorded and replication waits for
the session to resume.

Every read-fetch-commit cycle on subscriptions (updates and session
synchronizations) holds ``subscription_lock`` end to end, so cycles commit
in the order they started and none can overwrite a newer one.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional, TypeVar

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from catalogsync.exceptions import StorageError
from catalogsync.replica.client import CatalogClient
from catalogsync.replica.listing import Listing, listing_from_payload
from catalogsync.replica.session import SyncSession
from catalogsync.storage.database import session_scope
from catalogsync.storage.models import ListingRecord, SubscriptionRecord

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _to_listing(row: ListingRecord) -> Listing:
    return Listing(
        id=row.id, name=row.name, picture_url=row.picture_url, payload=dict(row.payload or {})
    )


class MutableSubscriptions:
    """Working copy of the subscription table handed to ``update`` mutators."""

    def __init__(self, current: Dict[str, FrozenSet[str]]) -> None:
        self._subs = dict(current)

    def add(self, name: str, ids: Iterable[str]) -> None:
        """Create the named subscription or replace its filter."""
        self._subs[name] = frozenset(str(i) for i in ids)

    def remove(self, name: str) -> bool:
        return self._subs.pop(name, None) is not None

    def remove_all(self) -> int:
        n = len(self._subs)
        self._subs.clear()
        return n

    def snapshot(self) -> Dict[str, FrozenSet[str]]:
        return dict(self._subs)


class SubscriptionSet:
    """Read/update access to the replica's named subscriptions."""

    def __init__(self, store: ReplicaStore) -> None:
        self._store = store

    async def all(self) -> Dict[str, FrozenSet[str]]:
        def _work() -> Dict[str, FrozenSet[str]]:
            with session_scope(self._store.factory) as session:
                rows = session.scalars(select(SubscriptionRecord))
                return {r.name: frozenset(str(i) for i in r.ids or []) for r in rows}

        return await self._store.run(_work)

    async def find(self, name: str) -> Optional[FrozenSet[str]]:
        return (await self.all()).get(name)

    async def ids(self) -> FrozenSet[str]:
        """Union of every subscription filter."""
        out: set[str] = set()
        for ids in (await self.all()).values():
            out |= ids
        return frozenset(out)

    async def count(self) -> int:
        return len(await self.all())

    async def update(self, mutator: Callable[[MutableSubscriptions], Any]) -> None:
        """Apply ``mutator`` to a working copy and commit the result.

        Raises ``SyncUnavailable`` if the session is active and the matching
        records cannot be fetched; nothing is committed in that case.
        """
        async with self._store.subscription_lock:
            working = MutableSubscriptions(await self.all())
            mutator(working)
            await self._store._apply_subscriptions(working.snapshot())


class ReplicaStore:
    """SQLAlchemy-backed replica with named partial-replication subscriptions."""

    def __init__(self, factory: sessionmaker[Session], client: Optional[CatalogClient]) -> None:
        self.factory = factory
        self.client = client
        self.subscriptions = SubscriptionSet(self)
        self.sync_session = SyncSession(self)
        self.subscription_lock = asyncio.Lock()
        self._lock = asyncio.Lock()

    async def run(self, fn: Callable[[], T]) -> T:
        """Run blocking database work ``fn`` in a worker thread."""
        try:
            return await asyncio.to_thread(fn)
        except SQLAlchemyError as exc:
            raise StorageError("Replica query failed") from exc

    async def subscribe(self, name: str, ids: Iterable[str]) -> None:
        """Shorthand for replacing a single named subscription."""
        wanted = list(ids)
        await self.subscriptions.update(lambda subs: subs.add(name, wanted))

    async def fetch_remote(self, ids: FrozenSet[str]) -> List[Dict[str, Any]]:
        if self.client is None or not ids:
            return []
        return await self.client.fetch_listings(ids)

    async def _apply_subscriptions(self, target: Dict[str, FrozenSet[str]]) -> None:
        # Caller holds subscription_lock
        union: set[str] = set()
        for ids in target.values():
            union |= ids
        active = self.sync_session.active
        payloads = await self.fetch_remote(frozenset(union)) if active else []

        def _commit(session: Session) -> None:
            session.execute(delete(SubscriptionRecord))
            for name, ids in target.items():
                session.add(SubscriptionRecord(name=name, ids=sorted(ids)))
            if active:
                self._materialize(session, payloads, union)

        await self.write(_commit)
        if not active:
            self.sync_session.mark_pending()
        logger.info(
            "Subscriptions updated: %d filter(s), %d id(s)%s",
            len(target),
            len(union),
            "" if active else " (replication deferred, session paused)",
        )

    def _materialize(
        self, session: Session, payloads: Iterable[Dict[str, Any]], keep: Iterable[str]
    ) -> None:
        keep_ids = set(keep)
        # Bound the replica to what is subscribed
        session.execute(
            delete(ListingRecord).where(ListingRecord.id.not_in(sorted(keep_ids))),
            execution_options={"synchronize_session": False},
        )
        for payload in payloads:
            listing = listing_from_payload(payload)
            if listing is None or listing.id not in keep_ids:
                continue
            self._merge(session, listing)

    @staticmethod
    def _merge(session: Session, listing: Listing) -> None:
        session.merge(
            ListingRecord(
                id=listing.id,
                name=listing.name,
                picture_url=listing.picture_url,
                payload=listing.payload,
            )
        )

    async def write(self, fn: Callable[[Session], T]) -> T:
        """Run ``fn(session)`` inside a single transaction and return its result."""

        def _work() -> T:
            with session_scope(self.factory) as session:
                return fn(session)

        async with self._lock:
            try:
                return await asyncio.to_thread(_work)
            except SQLAlchemyError as exc:
                raise StorageError("Replica write failed") from exc

    async def upsert_listings(self, payloads: Iterable[Dict[str, Any]]) -> int:
        """Materialize remote payloads without touching subscriptions."""
        listings = [lst for lst in map(listing_from_payload, payloads) if lst is not None]

        def _upsert(session: Session) -> int:
            for listing in listings:
                self._merge(session, listing)
            return len(listings)

        return await self.write(_upsert)

    async def replicate(self, payloads: Iterable[Dict[str, Any]], keep: FrozenSet[str]) -> None:
        """Upsert ``payloads`` and drop every listing outside ``keep``."""
        items = list(payloads)
        await self.write(lambda session: self._materialize(session, items, keep))

    async def delete_all(self) -> int:
        """Delete every replicated listing. Subscriptions are left as they are."""
        removed = await self.write(
            lambda session: session.execute(delete(ListingRecord)).rowcount or 0
        )
        logger.info("Replica cleared (%d listings removed)", removed)
        return int(removed)

    async def query_by_ids(self, ids: Iterable[str]) -> List[Listing]:
        """Return replicated listings for ``ids`` in the given order.

        Identifiers not (yet) replicated are skipped.
        """
        wanted = [str(i) for i in ids]
        if not wanted:
            return []

        def _work() -> Dict[str, Listing]:
            with session_scope(self.factory) as session:
                rows = session.scalars(select(ListingRecord).where(ListingRecord.id.in_(wanted)))
                return {r.id: _to_listing(r) for r in rows}

        by_id = await self.run(_work)
        return [by_id[i] for i in wanted if i in by_id]

    async def count(self) -> int:
        def _work() -> int:
            with session_scope(self.factory) as session:
                return int(session.scalar(select(func.count()).select_from(ListingRecord)) or 0)

        return await self.run(_work)
