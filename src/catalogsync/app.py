"""Application wiring: builds every component from ``Settings``."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, Optional

from sqlalchemy.engine import Engine

from catalogsync.config import Settings
from catalogsync.eviction import CacheEvictionManager
from catalogsync.exceptions import ConfigError
from catalogsync.images.cache import ImageCache
from catalogsync.replica.client import CatalogClient
from catalogsync.replica.scheduler import SyncScheduler
from catalogsync.replica.store import ReplicaStore
from catalogsync.search.orchestrator import SearchOrchestrator
from catalogsync.storage.cache_store import SearchCacheStore
from catalogsync.storage.database import get_engine, init_db, make_session_factory
from catalogsync.storage.models import CacheBase, ReplicaBase
from catalogsync.sync.aggregator import InterestSetAggregator
from catalogsync.sync.context import SyncContext
from catalogsync.sync.offline import OfflineModeController
from catalogsync.sync.synchronizer import SubscriptionSynchronizer

logger = logging.getLogger(__name__)

_MB = 1024 * 1024


@dataclass(slots=True)
class StorageReport:
    """Sizes in megabytes, rounded to two decimals."""

    local_db_mb: float
    replica_db_mb: float
    image_cache_mb: float

    def to_dict(self) -> Dict[str, float]:
        return {
            "local_db_mb": self.local_db_mb,
            "replica_db_mb": self.replica_db_mb,
            "image_cache_mb": self.image_cache_mb,
        }


def _sqlite_file(engine: Engine) -> Optional[Path]:
    url = engine.url
    if url.get_backend_name() != "sqlite" or not url.database or url.database == ":memory:":
        return None
    return Path(url.database)


def _file_mb(path: Optional[Path]) -> float:
    if path is None or not path.exists():
        return 0.0
    return round(path.stat().st_size / _MB, 2)


def storage_report(
    cache_engine: Engine, replica_engine: Engine, images: ImageCache
) -> StorageReport:
    """Database file sizes (SQLite only; 0 otherwise) and image cache size."""
    return StorageReport(
        local_db_mb=_file_mb(_sqlite_file(cache_engine)),
        replica_db_mb=_file_mb(_sqlite_file(replica_engine)),
        image_cache_mb=round(images.size() / _MB, 2),
    )


class CatalogApp:
    """Owns the stores and the components wired around them."""

    def __init__(self, settings: Settings, *, client: Optional[CatalogClient] = None) -> None:
        self.settings = settings
        rcfg = settings.replica
        if client is None:
            if not rcfg.base_url:
                raise ConfigError(
                    "Remote catalog is not configured. Set CATALOGSYNC_REPLICA__BASE_URL."
                )
            client = CatalogClient(
                base_url=rcfg.base_url,
                token=rcfg.token,
                search_path=rcfg.search_path,
                query_path=rcfg.query_path,
                verify_ssl=rcfg.verify_ssl,
                timeout=rcfg.timeout,
            )
        self.client = client

        self.cache_engine = get_engine(settings.cache.url)
        self.replica_engine = get_engine(rcfg.url)
        init_db(self.cache_engine, CacheBase)
        init_db(self.replica_engine, ReplicaBase)

        self.context = SyncContext(offline=settings.sync.offline_mode)
        self.cache = SearchCacheStore(make_session_factory(self.cache_engine))
        self.replica = ReplicaStore(make_session_factory(self.replica_engine), client)
        self.images = ImageCache(settings.images.directory, timeout=settings.images.timeout)

        self.synchronizer = SubscriptionSynchronizer(
            self.replica, self.context, name=rcfg.subscription_name
        )
        self.aggregator = InterestSetAggregator(self.cache, self.synchronizer)
        self.orchestrator = SearchOrchestrator(
            self.cache, self.replica, client, page_size=settings.search.page_size
        )
        self.offline = OfflineModeController(self.replica.sync_session, self.context)
        self.eviction = CacheEvictionManager(self.images, self.replica, self.cache)
        self.scheduler = SyncScheduler()

    async def start(self, *, schedule: bool = True) -> None:
        """Attach the aggregator and bring the subscription in line with the cache."""
        self.aggregator.attach()
        await self.aggregator.refresh()
        if schedule:
            self.scheduler.schedule_sync(
                self.replica.sync_session,
                interval=timedelta(seconds=self.settings.replica.sync_interval_seconds),
            )
            self.scheduler.start()

    async def close(self) -> None:
        self.aggregator.detach()
        await self.cache.wait_idle()
        self.scheduler.shutdown(wait=False)
        self.cache_engine.dispose()
        self.replica_engine.dispose()

    def storage_report(self) -> StorageReport:
        return storage_report(self.cache_engine, self.replica_engine, self.images)

    async def status(self) -> Dict[str, Any]:
        entries = await self.cache.all_entries()
        interest = await self.aggregator.current()
        return {
            "offline": self.offline.offline,
            "sync_session": self.replica.sync_session.state,
            "cached_terms": [e.key for e in entries],
            "interest_size": len(interest),
            "subscriptions": await self.replica.subscriptions.count(),
            "replicated_listings": await self.replica.count(),
            "storage": self.storage_report().to_dict(),
        }
