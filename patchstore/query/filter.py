"""
Filter chains.

A Filter is an immutable chain of leaf comparators, boolean operator
tokens and nested filters. Every builder call returns a new Filter, so
partial expressions can be shared and extended independently:

    base = Filter().less_than_or_equal_to(5, "key")
    first = base.equal_to("1", "id")     # base is unchanged
    either = base.or_().greater_than(6, "key")

Evaluation follows AND-over-OR precedence. The chain is split on OR
tokens into segments; an item passes if every member of some segment
passes. Two leaves with no operator between them are ANDed.

Leaf operators:
- less_than / less_than_or_equal_to / greater_than / greater_than_or_equal_to
- equal_to / not_equal_to: identity-style equality
- deep_equal_to / not_deep_equal_to: structural equality
- in_ / contains: membership in a list, or truthy key lookup otherwise
- matches: regular expression search
- custom: caller supplied predicate over the whole item
"""

import json
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, List, Optional, Pattern, Sequence, Tuple, Union

from patchstore.errors import ArgumentError, SerializationUnsupportedError
from patchstore.patch.pointer import ABSENT, Pointer, PointerLike, as_pointer, navigate
from patchstore.query.base import Query, QueryKind
from patchstore.utils import PRIMITIVE_TYPES, deep_equal, lookup, strict_equal


class FilterOp(Enum):
    """Leaf comparator kinds, valued by their query-string token."""
    LESS_THAN = "lt"
    LESS_THAN_OR_EQUAL_TO = "lte"
    GREATER_THAN = "gt"
    GREATER_THAN_OR_EQUAL_TO = "gte"
    EQUAL_TO = "eq"
    NOT_EQUAL_TO = "ne"
    DEEP_EQUAL_TO = "deq"
    NOT_DEEP_EQUAL_TO = "dne"
    IN = "in"
    CONTAINS = "contains"
    MATCHES = "match"
    CUSTOM = "custom"


class BoolOp(Enum):
    """Boolean operator tokens, valued by their query-string symbol."""
    AND = "&"
    OR = "|"


def _relational(compare: Callable[[Any, Any], bool]) -> Callable[[Any, Any], bool]:
    def test(actual: Any, expected: Any) -> bool:
        if actual is ABSENT or actual is None:
            return False
        try:
            return bool(compare(actual, expected))
        except TypeError:
            return False
    return test


def _membership(actual: Any, expected: Any) -> bool:
    if isinstance(actual, (list, tuple)):
        return any(strict_equal(entry, expected) for entry in actual)
    if actual is ABSENT or isinstance(actual, PRIMITIVE_TYPES):
        return False
    return bool(lookup(actual, expected))


def _pattern_search(actual: Any, pattern: Pattern) -> bool:
    if actual is ABSENT or actual is None:
        return False
    return pattern.search(str(actual)) is not None


_TESTS = {
    FilterOp.LESS_THAN: _relational(lambda a, b: a < b),
    FilterOp.LESS_THAN_OR_EQUAL_TO: _relational(lambda a, b: a <= b),
    FilterOp.GREATER_THAN: _relational(lambda a, b: a > b),
    FilterOp.GREATER_THAN_OR_EQUAL_TO: _relational(lambda a, b: a >= b),
    FilterOp.EQUAL_TO: strict_equal,
    FilterOp.NOT_EQUAL_TO: lambda a, b: not strict_equal(a, b),
    FilterOp.DEEP_EQUAL_TO: deep_equal,
    FilterOp.NOT_DEEP_EQUAL_TO: lambda a, b: not deep_equal(a, b),
    FilterOp.IN: _membership,
    FilterOp.CONTAINS: _membership,
    FilterOp.MATCHES: _pattern_search,
}


@dataclass(frozen=True)
class Comparator:
    """
    A leaf predicate.

    If ``path`` is None the test receives the whole item, otherwise the
    value found at ``path`` (ABSENT if missing). CUSTOM comparators hold
    a callable in ``value`` and always receive the whole item.
    """
    op: FilterOp
    value: Any
    path: Optional[Pointer] = None

    def test(self, item: Any) -> bool:
        if self.op is FilterOp.CUSTOM:
            return bool(self.value(item))
        actual = item if self.path is None else navigate(self.path, item)
        return _TESTS[self.op](actual, self.value)

    def to_string(self) -> str:
        if self.op is FilterOp.CUSTOM:
            raise SerializationUnsupportedError("Cannot serialize custom filter")

        value = self.value.pattern if self.op is FilterOp.MATCHES else self.value
        try:
            rendered = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise SerializationUnsupportedError(
                f"Cannot serialize filter value {value!r}: {e}"
            ) from e

        if self.path is None or self.path.is_root:
            return f"{self.op.value}({rendered})"
        return f"{self.op.value}({render_path(self.path)},{rendered})"


_BARE_PATH = re.compile(r'^[^\s,()&|"]+(?:\s+[^\s,()&|"]+)*$')


def render_path(path: Pointer) -> str:
    """
    Render a leaf path for a query string.

    Paths are written without their leading slash (``meta/stars``). A path
    holding characters the query grammar uses, or edge whitespace, is
    written as a JSON string of the full pointer instead (``"/a,b"``).
    """
    text = str(path)[1:]
    if _BARE_PATH.match(text):
        return text
    return json.dumps(str(path))


ChainMember = Union[Comparator, BoolOp, "Filter"]


class Filter(Query):
    """
    Immutable predicate chain over identifiable items.

    Example:
        f = Filter().less_than(5, "key").or_().equal_to("2", "id")
        f.apply([{"id": "1", "key": 5}, {"id": "2", "key": 7}])
        # [{'id': '2', 'key': 7}]
        f.to_string()
        # 'lt(key,5)|eq(id,"2")'
    """

    kind = QueryKind.FILTER

    def __init__(
        self,
        chain: Sequence[ChainMember] = (),
        serializer: Optional[Callable[["Filter"], str]] = None,
    ):
        self._chain: Tuple[ChainMember, ...] = tuple(chain)
        self._serializer = serializer

    @property
    def chain(self) -> Tuple[ChainMember, ...]:
        return self._chain

    @property
    def serializer(self) -> Optional[Callable[["Filter"], str]]:
        return self._serializer

    # -------------------------------------------------------------------------
    # Chain building
    # -------------------------------------------------------------------------

    def _extend(self, *members: ChainMember) -> "Filter":
        return Filter(self._chain + members, self._serializer)

    def _leaf(self, op: FilterOp, value: Any, path: Optional[PointerLike]) -> "Filter":
        return self._extend(Comparator(op, value, as_pointer(path) if path is not None else None))

    def _combine(self, op: BoolOp, other: Optional["Filter"]) -> "Filter":
        if other is None:
            return self._extend(op)
        if not isinstance(other, Filter):
            raise ArgumentError(f"Can only combine a Filter with another Filter, got {type(other).__name__}")
        return Filter((self, op, other), self._serializer)

    def and_(self, other: Optional["Filter"] = None) -> "Filter":
        """
        AND with the next leaf, or with a complete filter.

        ``f.and_()`` opens an explicit AND for the following leaf;
        ``f.and_(g)`` yields the chain ``[f, AND, g]``.
        """
        return self._combine(BoolOp.AND, other)

    def or_(self, other: Optional["Filter"] = None) -> "Filter":
        """OR with the next leaf, or with a complete filter."""
        return self._combine(BoolOp.OR, other)

    def __and__(self, other: "Filter") -> "Filter":
        if not isinstance(other, Filter):
            return NotImplemented
        return self.and_(other)

    def __or__(self, other: "Filter") -> "Filter":
        if not isinstance(other, Filter):
            return NotImplemented
        return self.or_(other)

    def less_than(self, value: Any, path: Optional[PointerLike] = None) -> "Filter":
        return self._leaf(FilterOp.LESS_THAN, value, path)

    def less_than_or_equal_to(self, value: Any, path: Optional[PointerLike] = None) -> "Filter":
        return self._leaf(FilterOp.LESS_THAN_OR_EQUAL_TO, value, path)

    def greater_than(self, value: Any, path: Optional[PointerLike] = None) -> "Filter":
        return self._leaf(FilterOp.GREATER_THAN, value, path)

    def greater_than_or_equal_to(self, value: Any, path: Optional[PointerLike] = None) -> "Filter":
        return self._leaf(FilterOp.GREATER_THAN_OR_EQUAL_TO, value, path)

    def equal_to(self, value: Any, path: Optional[PointerLike] = None) -> "Filter":
        return self._leaf(FilterOp.EQUAL_TO, value, path)

    def not_equal_to(self, value: Any, path: Optional[PointerLike] = None) -> "Filter":
        return self._leaf(FilterOp.NOT_EQUAL_TO, value, path)

    def deep_equal_to(self, value: Any, path: Optional[PointerLike] = None) -> "Filter":
        return self._leaf(FilterOp.DEEP_EQUAL_TO, value, path)

    def not_deep_equal_to(self, value: Any, path: Optional[PointerLike] = None) -> "Filter":
        return self._leaf(FilterOp.NOT_DEEP_EQUAL_TO, value, path)

    def in_(self, value: Any, path: Optional[PointerLike] = None) -> "Filter":
        """Match if ``value`` is in the list at path, or is a truthy key of it."""
        return self._leaf(FilterOp.IN, value, path)

    def contains(self, value: Any, path: Optional[PointerLike] = None) -> "Filter":
        """Same test as in_(), rendered with the ``contains`` token."""
        return self._leaf(FilterOp.CONTAINS, value, path)

    def matches(self, pattern: Union[str, Pattern], path: Optional[PointerLike] = None) -> "Filter":
        """Match if the regular expression finds a match in str(value at path)."""
        if isinstance(pattern, str):
            pattern = re.compile(pattern)
        return self._leaf(FilterOp.MATCHES, pattern, path)

    def custom(self, test: Callable[[Any], bool]) -> "Filter":
        """Add a caller supplied predicate over the whole item."""
        if not callable(test):
            raise ArgumentError("custom() requires a callable")
        return self._extend(Comparator(FilterOp.CUSTOM, test))

    # -------------------------------------------------------------------------
    # Evaluation
    # -------------------------------------------------------------------------

    def _segments(self) -> List[List[ChainMember]]:
        """Split the chain into OR-separated conjunctions."""
        segments: List[List[ChainMember]] = [[]]
        for member in self._chain:
            if member is BoolOp.OR:
                segments.append([])
            elif member is not BoolOp.AND:
                segments[-1].append(member)
        return [segment for segment in segments if segment]

    @staticmethod
    def _passes(segments: List[List[ChainMember]], item: Any) -> bool:
        if not segments:
            return True
        return any(all(member.test(item) for member in segment) for segment in segments)

    def test(self, item: Any) -> bool:
        """Check a single item against the chain."""
        return self._passes(self._segments(), item)

    def apply(self, data: Sequence[Any]) -> List[Any]:
        segments = self._segments()
        return [item for item in data if self._passes(segments, item)]

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    @property
    def leaf_count(self) -> int:
        count = 0
        for member in self._chain:
            if isinstance(member, Filter):
                count += member.leaf_count
            elif isinstance(member, Comparator):
                count += 1
        return count

    def to_string(self) -> str:
        """
        Render the query-string form, e.g. ``lt(key,5)&eq(id,"1")``.

        Raises:
            SerializationUnsupportedError: If the chain holds a custom predicate
        """
        if self._serializer is not None:
            return self._serializer(self)
        return serialize_filter(self)

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, Filter):
            return self._chain == other._chain and self._serializer == other._serializer
        return NotImplemented

    __hash__ = None

    def __repr__(self) -> str:
        return f"Filter({list(self._chain)!r})"


def serialize_filter(filter: Filter) -> str:
    """Default query-string rendering for a filter chain."""
    parts: List[str] = []
    pending: Optional[BoolOp] = None

    for member in filter.chain:
        if isinstance(member, BoolOp):
            pending = member
            continue

        if isinstance(member, Filter):
            rendered = member.to_string()
            if member.leaf_count > 1:
                rendered = f"({rendered})"
        else:
            rendered = member.to_string()

        if parts:
            parts.append((pending or BoolOp.AND).value)
        parts.append(rendered)
        pending = None

    return "".join(parts)
