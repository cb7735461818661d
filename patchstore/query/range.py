"""Range queries: take ``count`` items starting at ``start``."""

from typing import Any, Callable, List, Optional, Sequence

from patchstore.errors import ArgumentError
from patchstore.query.base import Query, QueryKind


class Range(Query):
    """
    Slice ``[start, start + count)`` out of a collection.

    Out-of-bounds ranges are clamped by slicing: they yield a shorter or
    empty list rather than an error.
    """

    kind = QueryKind.RANGE

    def __init__(
        self,
        start: int,
        count: int,
        serializer: Optional[Callable[["Range"], str]] = None,
    ):
        if isinstance(start, bool) or not isinstance(start, int) or start < 0:
            raise ArgumentError(f"Range start must be a non-negative integer, got {start!r}")
        if isinstance(count, bool) or not isinstance(count, int) or count < 0:
            raise ArgumentError(f"Range count must be a non-negative integer, got {count!r}")
        self.start = start
        self.count = count
        self._serializer = serializer

    def apply(self, data: Sequence[Any]) -> List[Any]:
        return list(data[self.start:self.start + self.count])

    def to_string(self) -> str:
        if self._serializer is not None:
            return self._serializer(self)
        return f"range({self.start}, {self.count})"

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, Range):
            return (self.start, self.count) == (other.start, other.count)
        return NotImplemented

    __hash__ = None

    def __repr__(self) -> str:
        return f"Range(start={self.start}, count={self.count})"
