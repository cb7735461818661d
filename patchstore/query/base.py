"""
Core query abstractions.

A Query is a transform over a collection of identifiable items. The
three kinds are kept apart by an explicit discriminant so a store can
hold an ordered, mixed list of them:

- FILTER: keep the items a predicate chain accepts
- SORT: reorder the items
- RANGE: slice the items
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, List, Sequence


class QueryKind(Enum):
    """Discriminant for query values."""
    FILTER = "filter"
    SORT = "sort"
    RANGE = "range"


class Query(ABC):
    """
    Abstract base class for all queries.

    Subclasses implement apply() and to_string(). apply() never mutates
    its input; it returns a new list.
    """

    kind: QueryKind

    @abstractmethod
    def apply(self, data: Sequence[Any]) -> List[Any]:
        """
        Apply this query to a collection.

        Args:
            data: Items to transform

        Returns:
            A new list with the transformed items
        """
        pass

    @abstractmethod
    def to_string(self) -> str:
        """Render this query in its query-string form."""
        pass

    def __str__(self) -> str:
        return self.to_string()


def apply_queries(queries: Sequence[Query], data: Sequence[Any]) -> List[Any]:
    """Fold a query pipeline over ``data``, left to right."""
    result = list(data)
    for query in queries:
        result = query.apply(result)
    return result
