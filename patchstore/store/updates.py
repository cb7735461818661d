"""
Change notification records.

Subscribers receive a list of these per notification call. Every
record carries its UpdateType so consumers can dispatch on ``type``
without isinstance checks.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

from patchstore.patch.patch import Patch, diff


class UpdateType(Enum):
    """Kinds of committed mutation."""
    ADDED = "added"
    UPDATED = "updated"
    DELETED = "deleted"


@dataclass
class ItemAdded:
    """An item was appended to the collection at ``index``."""
    item: Any
    index: int
    type: UpdateType = field(default=UpdateType.ADDED, init=False)


@dataclass
class ItemUpdated:
    """
    An existing item was replaced.

    The patch describing the change is computed on the first call to
    diff() and cached. When the update came from ``put(id, patch)`` the
    supplied patch is returned as is.
    """
    item: Any
    index: int
    previous_index: int
    old_item: Any = None
    patch: Optional[Patch] = field(default=None, repr=False)
    type: UpdateType = field(default=UpdateType.UPDATED, init=False)

    def diff(self) -> Patch:
        if self.patch is None:
            self.patch = diff(self.old_item, self.item)
        return self.patch


@dataclass
class ItemDeleted:
    """The item with ``id`` was removed from position ``index``."""
    id: Any
    index: int
    type: UpdateType = field(default=UpdateType.DELETED, init=False)


Update = Union[ItemAdded, ItemUpdated, ItemDeleted]
