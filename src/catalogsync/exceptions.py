"""Custom exception hierarchy for catalogsync.

These exceptions allow callers to discriminate error categories
and handle them appropriately while preserving the original context.
None of them is meant to bring the process down: every failure leaves
the stores in a stale but usable state.
"""

from __future__ import annotations

from typing import List, Tuple


class CatalogSyncError(Exception):
    """Base class for all catalogsync exceptions."""


class ConfigError(CatalogSyncError):
    """Raised when configuration loading or validation fails."""


class StorageError(CatalogSyncError):
    """Raised when the storage layer encounters an error (DB, filesystem, etc.)."""


class DuplicateKey(StorageError):
    """Raised when inserting a search-cache entry whose key already exists."""

    def __init__(self, key: str) -> None:
        super().__init__(f"Search cache entry already exists: {key!r}")
        self.key = key


class SearchError(CatalogSyncError):
    """Raised when the remote search procedure fails."""


class SyncUnavailable(CatalogSyncError):
    """Raised when the replica cannot reach the remote catalog."""


class EvictionPartialFailure(CatalogSyncError):
    """Raised when one or more eviction steps failed.

    ``failures`` holds ``(step_name, exception)`` pairs in the order they occurred.
    """

    def __init__(self, failures: List[Tuple[str, BaseException]]) -> None:
        steps = ", ".join(name for name, _ in failures)
        super().__init__(f"Cache eviction incomplete; failed steps: {steps}")
        self.failures = failures
