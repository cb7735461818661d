"""
Storage backends.

A Backend owns the item sequence and its identity index, and exposes
four primitives (get, add, put, delete) that each return the update
record describing what was committed. Notification, locking and
derived views live in Store, which wraps any Backend.
"""

import copy
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional, Tuple

from patchstore.errors import ArgumentError, DuplicateIdentityError, UnknownIdentityError
from patchstore.patch.patch import Patch
from patchstore.store.updates import ItemAdded, ItemDeleted, ItemUpdated
from patchstore.utils import lookup

logger = logging.getLogger(__name__)


class Backend(ABC):
    """
    Abstract base class for item storage.

    Implementations must keep the item sequence and the identity index in
    agreement after every primitive, bump ``version`` exactly once per
    committed mutation, and leave both untouched when a primitive raises.
    """

    id_property: str = "id"

    def get_id(self, item: Any) -> Any:
        """Read the identity of an item."""
        return lookup(item, self.id_property)

    @property
    @abstractmethod
    def version(self) -> int:
        """Monotonic counter of committed mutations."""
        pass

    @abstractmethod
    def get(self, id: Any) -> Any:
        """
        Get an item by id.

        Raises:
            UnknownIdentityError: If no item has this id
        """
        pass

    @abstractmethod
    def add(self, item: Any) -> ItemAdded:
        """
        Append a new item.

        Raises:
            DuplicateIdentityError: If the id is already present
        """
        pass

    @abstractmethod
    def put(self, item: Any, id: Any = None, patch: Optional[Patch] = None) -> ItemUpdated:
        """
        Replace the item stored under ``id`` (default: the item's own id).

        Raises:
            UnknownIdentityError: If no item has this id
        """
        pass

    @abstractmethod
    def delete(self, id: Any) -> ItemDeleted:
        """
        Remove an item by id.

        Raises:
            UnknownIdentityError: If no item has this id
        """
        pass

    @abstractmethod
    def items(self) -> List[Any]:
        """All items in sequence order, as a new list."""
        pass

    def contains(self, id: Any) -> bool:
        try:
            self.get(id)
        except UnknownIdentityError:
            return False
        return True

    def __len__(self) -> int:
        return len(self.items())


class MemoryBackend(Backend):
    """
    In-memory list plus an id -> position index.

    Items are stored by reference. When ``snapshot_updates`` is set the
    previous item is deep-copied into ItemUpdated.old_item so a later
    in-place edit by the caller cannot change what the diff reports.
    """

    def __init__(
        self,
        data: Optional[Iterable[Any]] = None,
        id_property: str = "id",
        snapshot_updates: bool = True,
    ):
        self.id_property = id_property
        self.snapshot_updates = snapshot_updates
        self._items: List[Any] = []
        self._index: Dict[Any, int] = {}
        self._version = 0
        if data is not None:
            self._load(list(data))

    def _require_id(self, item: Any) -> Any:
        id = self.get_id(item)
        if id is None:
            raise ArgumentError(f"Item has no '{self.id_property}' property: {item!r}")
        return id

    def _load(self, data: List[Any]) -> None:
        index: Dict[Any, int] = {}
        for position, item in enumerate(data):
            id = self._require_id(item)
            if id in index:
                raise DuplicateIdentityError(f"Collection contains item with duplicate id: {id!r}", id)
            index[id] = position
        self._items = data
        self._index = index
        logger.debug(f"Loaded {len(data)} items")

    def _reindex(self, start: int) -> None:
        """Rebuild index entries for positions ``start`` onwards."""
        for position in range(start, len(self._items)):
            self._index[self.get_id(self._items[position])] = position

    @property
    def version(self) -> int:
        return self._version

    def index_of(self, id: Any) -> int:
        """Sequence position of an id."""
        try:
            return self._index[id]
        except KeyError:
            raise UnknownIdentityError(f"Unknown id: {id!r}", id) from None

    def get(self, id: Any) -> Any:
        return self._items[self.index_of(id)]

    def add(self, item: Any) -> ItemAdded:
        id = self._require_id(item)
        if id in self._index:
            raise DuplicateIdentityError(f"Item added to collection with duplicate id: {id!r}", id)

        self._items.append(item)
        self._index[id] = len(self._items) - 1
        self._version += 1
        logger.debug(f"Added item {id!r} at {self._index[id]} (version {self._version})")
        return ItemAdded(item=item, index=self._index[id])

    def put(self, item: Any, id: Any = None, patch: Optional[Patch] = None) -> ItemUpdated:
        new_id = self._require_id(item)
        id = new_id if id is None else id
        position = self.index_of(id)
        if new_id != id and new_id in self._index:
            raise DuplicateIdentityError(f"Cannot rename {id!r}: id {new_id!r} is taken", new_id)

        previous = self._items[position]
        old_item = copy.deepcopy(previous) if self.snapshot_updates else previous

        self._items[position] = item
        if new_id != id:
            del self._index[id]
            self._index[new_id] = position
        self._version += 1
        logger.debug(f"Updated item {new_id!r} at {position} (version {self._version})")
        return ItemUpdated(
            item=item,
            index=position,
            previous_index=position,
            old_item=old_item,
            patch=patch,
        )

    def delete(self, id: Any) -> ItemDeleted:
        position = self.index_of(id)
        del self._items[position]
        del self._index[id]
        # Only positions after the removed slot moved
        self._reindex(position)
        self._version += 1
        logger.debug(f"Deleted item {id!r} from {position} (version {self._version})")
        return ItemDeleted(id=id, index=position)

    def items(self) -> List[Any]:
        return list(self._items)

    def contains(self, id: Any) -> bool:
        return id in self._index

    def index(self) -> List[Tuple[Any, int]]:
        """Snapshot of the identity index as (id, position) pairs."""
        return list(self._index.items())

    def __len__(self) -> int:
        return len(self._items)
