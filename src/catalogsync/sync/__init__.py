"""Interest-set aggregation, subscription reconciliation and offline mode."""

from .aggregator import InterestSet, InterestSetAggregator, recompute
from .context import SyncContext
from .offline import OfflineModeController
from .synchronizer import SubscriptionSynchronizer

__all__ = [
    "InterestSet",
    "InterestSetAggregator",
    "OfflineModeController",
    "SubscriptionSynchronizer",
    "SyncContext",
    "recompute",
]
