"""
Sort queries.

A Sort orders items either with a two-argument comparator or by the
value found at a field pointer. apply() returns a new list built with
Python's stable ``sorted``; the input sequence is never reordered, so
several views may safely share one source collection.
"""

import functools
from typing import Any, Callable, List, Optional, Sequence, Union

from patchstore.errors import ArgumentError, SerializationUnsupportedError
from patchstore.patch.pointer import ABSENT, Pointer, PointerLike, as_pointer, navigate
from patchstore.query.base import Query, QueryKind

Comparator = Callable[[Any, Any], int]


def compare_values(a: Any, b: Any) -> int:
    """Relational comparison where None and ABSENT sort strictly first."""
    a_missing = a is None or a is ABSENT
    b_missing = b is None or b is ABSENT
    if a_missing and b_missing:
        return 0
    if a_missing:
        return -1
    if b_missing:
        return 1
    return (a > b) - (a < b)


class Sort(Query):
    """
    Order a collection by comparator or field.

    ``descending`` negates the final comparison result, so ties stay in
    source order in both directions.

    Example:
        Sort("key").apply(items)                 # ascending by item["key"]
        Sort("/meta/stars", descending=True)     # nested field, high first
        Sort(lambda a, b: len(a["tags"]) - len(b["tags"]))
    """

    kind = QueryKind.SORT

    def __init__(
        self,
        by: Union[Comparator, PointerLike],
        descending: bool = False,
        serializer: Optional[Callable[["Sort"], str]] = None,
    ):
        self.comparator: Optional[Comparator] = None
        self.path: Optional[Pointer] = None

        if callable(by) and not isinstance(by, Pointer):
            self.comparator = by
        elif by is None:
            raise ArgumentError("Sort requires a comparator or a field pointer")
        else:
            self.path = as_pointer(by)

        self.descending = bool(descending)
        self._serializer = serializer

    def compare(self, a: Any, b: Any) -> int:
        if self.comparator is not None:
            result = self.comparator(a, b)
        else:
            result = compare_values(navigate(self.path, a), navigate(self.path, b))
        return -result if self.descending else result

    def apply(self, data: Sequence[Any]) -> List[Any]:
        return sorted(data, key=functools.cmp_to_key(self.compare))

    def to_string(self) -> str:
        """
        Render ``Sort(<pointer>, +|-)``.

        Raises:
            SerializationUnsupportedError: If the sort uses a comparator function
        """
        if self._serializer is not None:
            return self._serializer(self)
        if self.comparator is not None:
            raise SerializationUnsupportedError("Cannot serialize a sort built from a comparator function")
        return f"Sort({self.path}, {'-' if self.descending else '+'})"

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, Sort):
            return (
                self.comparator == other.comparator
                and self.path == other.path
                and self.descending == other.descending
            )
        return NotImplemented

    __hash__ = None

    def __repr__(self) -> str:
        by = self.comparator if self.comparator is not None else self.path
        return f"Sort({by!r}, descending={self.descending})"
