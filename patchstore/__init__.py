"""
patchstore - an in-memory, queryable, observable item store.

Three pieces work together:
- patch: JSON pointers plus a structural diff/patch engine
- query: filter chains with AND-over-OR precedence, sort and range
- store: an identity-keyed collection whose derived views recompute
  lazily when the source version moves, and whose subscribers receive
  typed update records

Example Usage:
    >>> from patchstore import Store
    >>> store = Store([{"id": "1", "key": 5}, {"id": "2", "key": 7}])
    >>> store.filter(store.create_filter().less_than(6, "key")).fetch()
    [{'id': '1', 'key': 5}]
    >>> store.put({"id": "2", "key": 8})
    {'id': '2', 'key': 8}
"""

__version__ = "0.1.0"
__author__ = "patchstore Contributors"

# Errors
from patchstore.errors import (
    PatchStoreError,
    AddressError,
    PreconditionError,
    ArgumentError,
    DuplicateIdentityError,
    UnknownIdentityError,
    SerializationUnsupportedError,
    ParseError,
)

# Configuration
from patchstore.config import StoreConfig, get_config, init_config

# Pointers and patches
from patchstore.patch import (
    ABSENT,
    Pointer,
    pointer,
    navigate,
    Operation,
    OperationType,
    operation_factory,
    Patch,
    diff,
)

# Queries
from patchstore.query import (
    Query,
    QueryKind,
    Filter,
    Sort,
    Range,
    parse_filter,
    parse_query,
    parse_queries_file,
)

# Store
from patchstore.store import (
    Store,
    Subscription,
    MemoryBackend,
    Backend,
    UpdateType,
    ItemAdded,
    ItemUpdated,
    ItemDeleted,
)

__all__ = [
    # Errors
    "PatchStoreError",
    "AddressError",
    "PreconditionError",
    "ArgumentError",
    "DuplicateIdentityError",
    "UnknownIdentityError",
    "SerializationUnsupportedError",
    "ParseError",
    # Configuration
    "StoreConfig",
    "get_config",
    "init_config",
    # Patch
    "ABSENT",
    "Pointer",
    "pointer",
    "navigate",
    "Operation",
    "OperationType",
    "operation_factory",
    "Patch",
    "diff",
    # Query
    "Query",
    "QueryKind",
    "Filter",
    "Sort",
    "Range",
    "parse_filter",
    "parse_query",
    "parse_queries_file",
    # Store
    "Store",
    "Subscription",
    "MemoryBackend",
    "Backend",
    "UpdateType",
    "ItemAdded",
    "ItemUpdated",
    "ItemDeleted",
]
