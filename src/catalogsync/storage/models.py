"""SQLAlchemy models for catalogsync storage.

Two independent declarative bases: ``CacheBase`` for the local search cache
and ``ReplicaBase`` for the device-side replica of the remote catalog. They
are created on separate engines and never share a transaction.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import JSON, DateTime, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CacheBase(DeclarativeBase):
    """Declarative base for the local search cache."""


class ReplicaBase(DeclarativeBase):
    """Declarative base for the replicated catalog subset."""


class SearchCacheRecord(CacheBase):
    """Result identifiers remembered for one normalized search term."""

    __tablename__ = "search_cache"

    # Surrogate key keeps insertion order stable
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    search_term: Mapped[str] = mapped_column(String(512), unique=True, index=True)
    results: Mapped[list[str]] = mapped_column(JSON, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class ListingRecord(ReplicaBase):
    """A catalog record materialized on the device."""

    __tablename__ = "listings"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[Optional[str]] = mapped_column(String(512), default=None)
    picture_url: Mapped[Optional[str]] = mapped_column(String(2048), default=None)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )


class SubscriptionRecord(ReplicaBase):
    """A named partial-replication filter: the identifiers it materializes."""

    __tablename__ = "subscriptions"

    name: Mapped[str] = mapped_column(String(255), primary_key=True)
    ids: Mapped[list[str]] = mapped_column(JSON, default=list)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )
