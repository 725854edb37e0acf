"""Device-side partial replica of the remote catalog."""

from .client import CatalogClient
from .listing import Listing, listing_from_payload
from .session import SyncSession
from .store import MutableSubscriptions, ReplicaStore, SubscriptionSet

__all__ = [
    "CatalogClient",
    "Listing",
    "listing_from_payload",
    "MutableSubscriptions",
    "ReplicaStore",
    "SubscriptionSet",
    "SyncSession",
]
