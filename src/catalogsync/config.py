from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppConfig(BaseModel):
    """Application-specific configuration values."""

    name: str = "catalogsync"
    env: str = "development"
    log_level: str = "INFO"
    # Transport settings for FastMCP: "stdio" (default), "http", or "sse"
    transport: Literal["stdio", "http", "sse"] = "stdio"
    host: str = "127.0.0.1"
    port: int = 8000


class CacheConfig(BaseModel):
    """Local search-cache database (lives as long as the install)."""

    url: str = "sqlite:///catalogsync-cache.db"


class ReplicaConfig(BaseModel):
    """Device-side replica of the remote catalog and the remote endpoints feeding it."""

    url: str = "sqlite:///catalogsync-replica.db"
    base_url: Optional[str] = None
    token: Optional[str] = None
    # Remote function invoked for full-text search
    search_path: str = "/functions/searchListings"
    # Remote endpoint returning records for a set of identifiers
    query_path: str = "/listings/query"
    timeout: float = 30.0
    verify_ssl: bool = True
    sync_interval_seconds: int = 300
    subscription_name: str = "listing"


class SearchConfig(BaseModel):
    """Remote search paging."""

    page_size: int = 20


class SyncConfig(BaseModel):
    """Live sync channel defaults (not persisted across restarts)."""

    offline_mode: bool = False


class ImageCacheConfig(BaseModel):
    """Image byte-cache location."""

    directory: str = ".catalogsync/images"
    timeout: float = 30.0


class Settings(BaseSettings):
    """Top-level settings loaded from environment variables and .env only."""

    model_config = SettingsConfigDict(
        env_prefix="CATALOGSYNC_",
        env_nested_delimiter="__",
        env_file=".env",
        extra="ignore",
    )

    app: AppConfig = AppConfig()
    cache: CacheConfig = CacheConfig()
    replica: ReplicaConfig = ReplicaConfig()
    search: SearchConfig = SearchConfig()
    sync: SyncConfig = SyncConfig()
    images: ImageCacheConfig = ImageCacheConfig()


def load_settings() -> Settings:
    """Load settings from environment variables and .env only."""
    return Settings()  # type: ignore[call-arg]
