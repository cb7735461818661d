"""
Query engine: filter chains, sort and range transforms.

Example:
    from patchstore.query import Filter, Sort, Range, apply_queries

    queries = [Filter().less_than(5, "key"), Sort("key", descending=True), Range(0, 10)]
    apply_queries(queries, items)
"""

from patchstore.query.base import Query, QueryKind, apply_queries

from patchstore.query.filter import (
    BoolOp,
    Comparator,
    Filter,
    FilterOp,
    serialize_filter,
)

from patchstore.query.sort import Sort, compare_values
from patchstore.query.range import Range

from patchstore.query.parser import (
    FilterParser,
    QueryParser,
    load_queries_string,
    parse_filter,
    parse_queries_file,
    parse_query,
    parse_range,
    parse_sort,
)

__all__ = [
    # Base
    "Query",
    "QueryKind",
    "apply_queries",
    # Filter
    "BoolOp",
    "Comparator",
    "Filter",
    "FilterOp",
    "serialize_filter",
    # Sort / Range
    "Sort",
    "compare_values",
    "Range",
    # Parsing
    "FilterParser",
    "QueryParser",
    "load_queries_string",
    "parse_filter",
    "parse_queries_file",
    "parse_query",
    "parse_range",
    "parse_sort",
]
