from datetime import timedelta
from pathlib import Path

import pytest

from catalogsync.app import CatalogApp
from catalogsync.config import CacheConfig, ReplicaConfig, Settings, load_settings
from catalogsync.exceptions import ConfigError, SyncUnavailable
from catalogsync.replica.client import CatalogClient
from catalogsync.replica.scheduler import SyncScheduler
from catalogsync.storage.database import get_engine

from conftest import FakeCatalog


def test_settings_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CATALOGSYNC_SEARCH__PAGE_SIZE", "5")
    monkeypatch.setenv("CATALOGSYNC_REPLICA__BASE_URL", "https://catalog.example.com")
    monkeypatch.setenv("CATALOGSYNC_SYNC__OFFLINE_MODE", "true")

    settings = load_settings()
    assert settings.search.page_size == 5
    assert settings.replica.base_url == "https://catalog.example.com"
    assert settings.sync.offline_mode is True
    assert settings.replica.subscription_name == "listing"


def test_get_engine_rejects_unknown_backends() -> None:
    with pytest.raises(ConfigError):
        get_engine("mysql://user:pass@db/catalog")


def test_app_without_remote_is_a_config_error(tmp_path: Path) -> None:
    settings = Settings(
        cache=CacheConfig(url=f"sqlite:///{tmp_path / 'c.db'}"),
        replica=ReplicaConfig(url=f"sqlite:///{tmp_path / 'r.db'}", base_url=None),
    )
    with pytest.raises(ConfigError):
        CatalogApp(settings)


def test_app_builds_http_client_from_settings(tmp_path: Path) -> None:
    settings = Settings(
        cache=CacheConfig(url=f"sqlite:///{tmp_path / 'c.db'}"),
        replica=ReplicaConfig(
            url=f"sqlite:///{tmp_path / 'r.db'}",
            base_url="https://catalog.example.com/",
            token="secret",
        ),
    )
    app = CatalogApp(settings)
    assert isinstance(app.client, CatalogClient)
    assert app.client.base_url == "https://catalog.example.com"
    assert app.client._headers()["Authorization"] == "Bearer secret"


def test_offline_default_applies_at_startup(tmp_path: Path, fake_catalog: FakeCatalog) -> None:
    settings = Settings(
        cache=CacheConfig(url=f"sqlite:///{tmp_path / 'c.db'}"),
        replica=ReplicaConfig(url=f"sqlite:///{tmp_path / 'r.db'}"),
    )
    settings.sync.offline_mode = True
    app = CatalogApp(settings, client=fake_catalog)  # type: ignore[arg-type]
    assert app.offline.offline is True
    assert app.replica.sync_session.state == "paused"


@pytest.mark.asyncio
async def test_status_and_storage_report(app: CatalogApp) -> None:
    await app.start(schedule=False)
    await app.orchestrator.search("cabin")
    await app.cache.wait_idle()

    status = await app.status()
    assert status["offline"] is False
    assert status["cached_terms"] == ["cabin"]
    assert status["interest_size"] == 2
    assert status["subscriptions"] == 1
    assert status["replicated_listings"] == 2
    assert status["storage"]["local_db_mb"] >= 0.0
    assert status["storage"]["image_cache_mb"] == 0.0
    await app.close()


@pytest.mark.asyncio
async def test_scheduled_sync_job_swallows_unreachable(app: CatalogApp) -> None:
    scheduler = SyncScheduler()
    scheduler.schedule_sync(app.replica.sync_session, interval=timedelta(seconds=30))
    job = scheduler._scheduler.get_job("replica-sync")
    assert job is not None

    async def unreachable() -> bool:
        raise SyncUnavailable("down")

    app.replica.sync_session.synchronize = unreachable  # type: ignore[method-assign]
    await job.func()
    assert scheduler.running is False
