"""
Versioned, subscribable item store with derived views.
"""

from patchstore.store.updates import (
    ItemAdded,
    ItemDeleted,
    ItemUpdated,
    Update,
    UpdateType,
)

from patchstore.store.backend import Backend, MemoryBackend
from patchstore.store.store import Store, Subscription

__all__ = [
    "ItemAdded",
    "ItemDeleted",
    "ItemUpdated",
    "Update",
    "UpdateType",
    "Backend",
    "MemoryBackend",
    "Store",
    "Subscription",
]
