"""
Observable, queryable item store.

A root Store wraps a Backend, serialises mutations with a re-entrant
lock and notifies subscribers after every committed change. Calling
filter(), sort(), range() or query() on any store returns a derived
view: a Store holding its source, the one query it applies to the
source's items, and a cache keyed by the version of the root it hangs
from.

Example:
    store = Store([{"id": "1", "key": 5}, {"id": "2", "key": 7}])
    low = store.filter(store.create_filter().less_than(6, "key"))
    low.fetch()                      # [{'id': '1', 'key': 5}]

    store.subscribe(lambda updates: print(updates))
    store.put({"id": "1", "key": 9})
    low.fetch()                      # []
"""

import copy
import logging
import threading
import uuid
from typing import Any, Callable, Iterable, List, Optional, Tuple, Union

from patchstore.config import get_config
from patchstore.errors import ArgumentError, UnknownIdentityError
from patchstore.patch.patch import Patch
from patchstore.patch.pointer import Pointer
from patchstore.query.base import Query, QueryKind
from patchstore.query.filter import Filter
from patchstore.query.range import Range
from patchstore.query.sort import Sort
from patchstore.store.backend import Backend, MemoryBackend
from patchstore.store.updates import Update

logger = logging.getLogger(__name__)

_MISSING = object()

Subscriber = Union[Callable[[List[Update]], Any], Any]


def _subscriber_name(subscriber: Subscriber) -> str:
    return getattr(subscriber, "__name__", type(subscriber).__name__)


class Subscription:
    """Handle returned by Store.subscribe()."""

    def __init__(self, store: "Store", subscriber: Subscriber):
        self.store = store
        self.subscriber = subscriber
        self.active = True

    def remove(self) -> None:
        """Unsubscribe. Calling this more than once is harmless."""
        if not self.active:
            return
        self.active = False
        self.store.unsubscribe(self.subscriber)

    def __repr__(self) -> str:
        return f"Subscription({_subscriber_name(self.subscriber)}, active={self.active})"


class Store:
    """
    Identity-keyed collection with derived, memoized views.

    Args:
        data: Initial items for a new MemoryBackend
        backend: An existing backend to wrap (mutually exclusive with data)
        id_property: Name of the identity field (default from config)
        filter_serializer: Query-string renderer used by create_filter()
        strict_subscribers: Re-raise subscriber failures (default from config)
    """

    def __init__(
        self,
        data: Optional[Iterable[Any]] = None,
        backend: Optional[Backend] = None,
        id_property: Optional[str] = None,
        filter_serializer: Optional[Callable[[Filter], str]] = None,
        strict_subscribers: Optional[bool] = None,
    ):
        if data is not None and backend is not None:
            raise ArgumentError("Pass either initial data or a backend, not both")

        config = get_config()
        if backend is None:
            backend = MemoryBackend(
                data,
                id_property=id_property or config.id_property,
                snapshot_updates=config.snapshot_updates,
            )
        elif id_property is not None:
            backend.id_property = id_property

        self._backend: Optional[Backend] = backend
        self._source: Optional[Store] = None
        self._query: Optional[Query] = None
        self._cache: Optional[Tuple[Backend, int, List[Any]]] = None
        # Root: dispatch order, and the stores that registered each subscriber
        self._subscribers: List[Subscriber] = []
        self._owners: List[List["Store"]] = []
        # View: (subscriber, root it was registered with)
        self._registrations: List[Tuple[Subscriber, "Store"]] = []
        self._lock = threading.RLock()
        self.filter_serializer = filter_serializer
        self.strict_subscribers = (
            config.strict_subscribers if strict_subscribers is None else strict_subscribers
        )

    @classmethod
    def _derive(cls, source: "Store", query: Query) -> "Store":
        view = cls.__new__(cls)
        view._backend = None
        view._source = source
        view._query = query
        view._cache = None
        view._subscribers = []
        view._owners = []
        view._registrations = []
        view._lock = None
        view.filter_serializer = source.filter_serializer
        view.strict_subscribers = source.strict_subscribers
        logger.debug(f"Derived view with {len(view.queries)} queries")
        return view

    # -------------------------------------------------------------------------
    # Identity
    # -------------------------------------------------------------------------

    @property
    def is_view(self) -> bool:
        return self._source is not None

    @property
    def source(self) -> Optional["Store"]:
        return self._source

    @property
    def _root(self) -> "Store":
        store = self
        while store._source is not None:
            store = store._source
        return store

    @property
    def queries(self) -> Tuple[Query, ...]:
        """The full pipeline from the root, this view's own query last."""
        if not self.is_view:
            return ()
        return self._source.queries + (self._query,)

    @property
    def backend(self) -> Backend:
        return self._root._backend

    @property
    def id_property(self) -> str:
        return self.backend.id_property

    @property
    def version(self) -> int:
        """The root's mutation counter; views share it."""
        return self.backend.version

    def get_id(self, item: Any) -> Any:
        return self.backend.get_id(item)

    def generate_id(self) -> str:
        return uuid.uuid4().hex

    def create_filter(self) -> Filter:
        """A new empty Filter carrying this store's serializer."""
        return Filter(serializer=self.filter_serializer)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get(self, id: Any, default: Any = _MISSING) -> Any:
        """
        Get an item by id from the backing collection.

        Views look ids up in the root, whether or not their queries
        would select the item.

        Raises:
            UnknownIdentityError: If the id is unknown and no default is given
        """
        with self._root._lock:
            try:
                return self.backend.get(id)
            except UnknownIdentityError:
                if default is _MISSING:
                    raise
                return default

    def snapshot(self) -> Tuple[int, List[Any]]:
        """The root's ``(version, items)`` taken atomically."""
        root = self._root
        with root._lock:
            return root._backend.version, root._backend.items()

    def fetch(self) -> List[Any]:
        """
        Materialize the items.

        A root returns a fresh list of its items. A view applies its own
        query to its source's items only when the root it currently hangs
        from has moved to a new version since the last fetch, otherwise
        it returns the cached list.
        """
        if not self.is_view:
            return self.snapshot()[1]

        backend = self.backend
        version = backend.version
        cache = self._cache
        if cache is not None and cache[0] is backend and cache[1] == version:
            return cache[2]

        data = self._query.apply(self._source.fetch())
        self._cache = (backend, version, data)
        logger.debug(f"Recomputed view at version {version}: {len(data)} items")
        return data

    def __len__(self) -> int:
        if self.is_view:
            return len(self.fetch())
        return len(self.backend)

    def __contains__(self, id: Any) -> bool:
        if self.is_view:
            return any(self.get_id(item) == id for item in self.fetch())
        with self._lock:
            return self.backend.contains(id)

    def __iter__(self):
        return iter(self.fetch())

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def add(self, item: Any) -> Any:
        """
        Add a new item. An item without an id is given generate_id().

        Raises:
            DuplicateIdentityError: If the id is already present
        """
        root = self._root
        with root._lock:
            if root.get_id(item) is None:
                item = root._assign_id(item)
            update = root._backend.add(item)
            root._notify([update])
        return update.item

    def put(self, item_or_id: Any, patch: Optional[Patch] = None) -> Any:
        """
        Update an item, or add it if its id is not present.

        ``put(item)`` replaces the stored item with the same id.
        ``put(id, patch)`` applies ``patch`` to a copy of the stored item
        and swaps the result in; the original is untouched if it fails.

        Raises:
            UnknownIdentityError: If a patch targets an unknown id
        """
        root = self._root
        with root._lock:
            backend = root._backend
            if patch is not None:
                id = item_or_id
                current = backend.get(id)
                updated = patch.apply(copy.deepcopy(current))
                update = backend.put(updated, id=id, patch=patch)
            else:
                item = item_or_id
                id = root.get_id(item)
                if id is None:
                    item = root._assign_id(item)
                    id = root.get_id(item)
                if backend.contains(id):
                    update = backend.put(item)
                else:
                    update = backend.add(item)
            root._notify([update])
        return update.item

    def delete(self, id: Any) -> Any:
        """
        Delete an item by id.

        Raises:
            UnknownIdentityError: If the id is unknown
        """
        root = self._root
        with root._lock:
            update = root._backend.delete(id)
            root._notify([update])
        return update.id

    def _assign_id(self, item: Any) -> Any:
        id = self.generate_id()
        if isinstance(item, dict):
            item = dict(item)
            item[self.id_property] = id
        else:
            setattr(item, self.id_property, id)
        return item

    # -------------------------------------------------------------------------
    # Derived views
    # -------------------------------------------------------------------------

    def query(self, query: Query) -> "Store":
        """Derive a view with ``query`` appended to this store's pipeline."""
        if not isinstance(query, Query):
            raise ArgumentError(f"Expected a Query, got {type(query).__name__}")
        return self._derive(self, query)

    def filter(self, filter_or_test: Union[Filter, Callable[[Any], bool]]) -> "Store":
        if isinstance(filter_or_test, Query) and filter_or_test.kind is QueryKind.FILTER:
            return self.query(filter_or_test)
        if callable(filter_or_test):
            return self.query(self.create_filter().custom(filter_or_test))
        raise ArgumentError(f"filter() expects a Filter or a predicate, got {type(filter_or_test).__name__}")

    def sort(
        self,
        sort_or_comparator: Union[Sort, Callable[[Any, Any], int], str, Pointer],
        descending: bool = False,
    ) -> "Store":
        if isinstance(sort_or_comparator, Query) and sort_or_comparator.kind is QueryKind.SORT:
            return self.query(sort_or_comparator)
        return self.query(Sort(sort_or_comparator, descending=descending))

    def range(self, range_or_start: Union[Range, int], count: Optional[int] = None) -> "Store":
        if isinstance(range_or_start, Query) and range_or_start.kind is QueryKind.RANGE:
            return self.query(range_or_start)
        if count is None:
            raise ArgumentError("range() needs a Range or both start and count")
        return self.query(Range(range_or_start, count))

    def release(self) -> "Store":
        """
        Detach a view from its source.

        The view keeps a deep copy of its current items in a private
        MemoryBackend, drops the subscriptions it registered on the root
        and becomes a root store itself. Views derived from it follow it:
        from then on they read from the released store, not the old root.
        Releasing a root store does nothing.
        """
        if not self.is_view:
            return self

        data = copy.deepcopy(self.fetch())
        for subscriber, root in list(self._registrations):
            root._unregister(subscriber, self)
        self._registrations = []

        root_backend = self.backend
        self._backend = MemoryBackend(
            data,
            id_property=root_backend.id_property,
            snapshot_updates=getattr(root_backend, "snapshot_updates", True),
        )
        self._source = None
        self._query = None
        self._cache = None
        self._lock = threading.RLock()
        logger.debug(f"Released view with {len(data)} items")
        return self

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------

    def subscribe(self, subscriber: Subscriber) -> Subscription:
        """
        Register a subscriber.

        Subscribers are callables taking a list of update records, or
        objects with an ``on_update(updates)`` method. Subscribing through
        a view registers with the root on the view's behalf, so release()
        drops only what the view added. A subscriber registered both on
        the root and through a view is notified once, and stays subscribed
        until every registration is removed.
        """
        if not callable(subscriber) and not callable(getattr(subscriber, "on_update", None)):
            raise ArgumentError("Subscriber must be callable or define on_update()")

        root = self._root
        if root._register(subscriber, self) and self.is_view:
            self._registrations.append((subscriber, root))
        return Subscription(self, subscriber)

    def unsubscribe(self, subscriber: Subscriber) -> bool:
        """Remove this store's registration. Returns False if it had none."""
        if self.is_view:
            for index, (registered, root) in enumerate(self._registrations):
                if registered == subscriber:
                    del self._registrations[index]
                    return root._unregister(subscriber, self)
            logger.warning(f"Subscriber {_subscriber_name(subscriber)} is not subscribed")
            return False
        return self._unregister(subscriber, self)

    def _register(self, subscriber: Subscriber, owner: "Store") -> bool:
        with self._lock:
            if subscriber in self._subscribers:
                owners = self._owners[self._subscribers.index(subscriber)]
                if any(existing is owner for existing in owners):
                    logger.warning(f"Subscriber {_subscriber_name(subscriber)} is already subscribed")
                    return False
                owners.append(owner)
                return True
            self._subscribers.append(subscriber)
            self._owners.append([owner])
            logger.debug(f"Subscribed {_subscriber_name(subscriber)}")
            return True

    def _unregister(self, subscriber: Subscriber, owner: "Store") -> bool:
        with self._lock:
            if subscriber in self._subscribers:
                position = self._subscribers.index(subscriber)
                owners = self._owners[position]
                for index, existing in enumerate(owners):
                    if existing is owner:
                        del owners[index]
                        if not owners:
                            del self._subscribers[position]
                            del self._owners[position]
                            logger.debug(f"Unsubscribed {_subscriber_name(subscriber)}")
                        return True
            logger.warning(f"Subscriber {_subscriber_name(subscriber)} is not subscribed")
            return False

    def _notify(self, updates: List[Update]) -> None:
        """Deliver committed updates to every subscriber, in order."""
        for subscriber in list(self._subscribers):
            try:
                if callable(subscriber):
                    subscriber(updates)
                else:
                    subscriber.on_update(updates)
            except Exception as e:
                logger.error(
                    f"Subscriber {_subscriber_name(subscriber)} failed for "
                    f"{updates[0].type.value} update: {e}"
                )
                if self.strict_subscribers:
                    raise

    def __repr__(self) -> str:
        if self.is_view:
            pipeline = ", ".join(repr(query) for query in self.queries)
            return f"Store(view, queries=[{pipeline}])"
        return f"Store({len(self)} items, version={self.version})"
