import asyncio
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

import pytest

from catalogsync.app import CatalogApp
from catalogsync.config import CacheConfig, ImageCacheConfig, ReplicaConfig, Settings
from catalogsync.exceptions import SearchError, SyncUnavailable
from catalogsync.replica.store import ReplicaStore
from catalogsync.storage.cache_store import SearchCacheStore
from catalogsync.storage.database import get_engine, init_db, make_session_factory
from catalogsync.storage.models import CacheBase, ReplicaBase

# ---------- Fake remote catalog ----------


def listing(lid: str, name: str) -> Dict[str, Any]:
    return {
        "_id": lid,
        "name": name,
        "images": {"picture_url": f"https://img.example.com/{lid}.jpg"},
        "property_type": "Apartment",
    }


RECORDS: Dict[str, Dict[str, Any]] = {
    "1": listing("1", "Sunny loft"),
    "2": listing("2", "Loft near the park"),
    "3": listing("3", "Cabin loft"),
    "4": listing("4", "Lake cabin"),
    "5": listing("5", "Beach house"),
    "6": listing("6", "Beach bungalow"),
}

SEARCHES: Dict[str, List[str]] = {
    "loft": ["1", "2", "3"],
    "cabin": ["3", "4"],
    "beach": ["5", "6"],
    "nothing": [],
}


class FakeCatalog:
    """Stands in for CatalogClient: remote search plus bulk fetch by ids."""

    def __init__(self) -> None:
        self.records = dict(RECORDS)
        self.searches = dict(SEARCHES)
        self.search_calls: List[Tuple[str, int, int]] = []
        self.fetch_calls: List[List[str]] = []
        self.search_error: Optional[str] = None
        self.unreachable = False
        # Seconds each successive fetch_listings call waits; later calls use 0
        self.fetch_delays: List[float] = []

    async def search_listings(
        self, phrase: str, *, page_number: int = 1, page_size: int = 20
    ) -> List[Dict[str, Any]]:
        self.search_calls.append((phrase, page_number, page_size))
        # Yield like a real network call would
        await asyncio.sleep(0)
        if self.search_error:
            raise SearchError(self.search_error)
        ids = self.searches.get(phrase.lower(), [])
        return [dict(self.records[i]) for i in ids][:page_size]

    async def fetch_listings(self, ids: Iterable[str]) -> List[Dict[str, Any]]:
        wanted = sorted(set(ids))
        self.fetch_calls.append(wanted)
        delay = self.fetch_delays.pop(0) if self.fetch_delays else 0
        await asyncio.sleep(delay)
        if self.unreachable:
            raise SyncUnavailable("catalog unreachable")
        return [dict(self.records[i]) for i in wanted if i in self.records]


# ---------- Fixtures ----------


@pytest.fixture
def fake_catalog() -> FakeCatalog:
    return FakeCatalog()


@pytest.fixture
def cache_store(tmp_path: Path) -> SearchCacheStore:
    engine = get_engine(f"sqlite:///{tmp_path / 'cache.db'}")
    init_db(engine, CacheBase)
    return SearchCacheStore(make_session_factory(engine))


@pytest.fixture
def replica(tmp_path: Path, fake_catalog: FakeCatalog) -> ReplicaStore:
    engine = get_engine(f"sqlite:///{tmp_path / 'replica.db'}")
    init_db(engine, ReplicaBase)
    return ReplicaStore(make_session_factory(engine), fake_catalog)  # type: ignore[arg-type]


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        cache=CacheConfig(url=f"sqlite:///{tmp_path / 'app-cache.db'}"),
        replica=ReplicaConfig(url=f"sqlite:///{tmp_path / 'app-replica.db'}"),
        images=ImageCacheConfig(directory=str(tmp_path / "images")),
    )


@pytest.fixture
def app(settings: Settings, fake_catalog: FakeCatalog) -> CatalogApp:
    return CatalogApp(settings, client=fake_catalog)  # type: ignore[arg-type]
