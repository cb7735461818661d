"""
Patches: ordered edit scripts between structured values.

diff() compares two structured values and returns the Patch that turns
the first into the second; Patch.apply() replays it.

Example:
    before = {"id": "1", "tags": ["a"], "meta": {"stars": 1}}
    after = {"id": "1", "tags": ["a", "b"], "meta": {"stars": 2}}

    patch = diff(before, after)
    str(patch)
    # [{"op": "add", "path": "/tags/1", "value": "b"},
    #  {"op": "replace", "path": "/meta/stars", "value": 2}]

    patch.apply(before) == after   # True
"""

import json
import logging
from collections.abc import Mapping
from typing import Any, Iterable, Iterator, List, Optional

from patchstore.errors import ArgumentError, PreconditionError
from patchstore.patch.operations import (
    AddOperation,
    Operation,
    OperationType,
    RemoveOperation,
    ReplaceOperation,
)
from patchstore.patch.pointer import Pointer
from patchstore.utils import deep_equal, is_recursable, same_container_kind

logger = logging.getLogger(__name__)


class Patch:
    """
    An ordered sequence of operations.

    apply() folds the operations left to right over the target. It is not
    transactional: if an operation fails, the effects of the operations
    before it stay in place. Apply to a copy when atomicity matters.
    """

    def __init__(self, operations: Optional[Iterable[Operation]] = None):
        self.operations: List[Operation] = list(operations or [])

    def apply(self, target: Any) -> Any:
        """
        Apply every operation in order and return the result.

        Test operations act as preconditions: a failing test raises
        PreconditionError and stops the patch.
        """
        for operation in self.operations:
            if operation.op_type is OperationType.TEST:
                if not operation.apply(target):
                    raise PreconditionError(
                        f"Test failed at path: {operation.path}", str(operation.path)
                    )
                continue
            target = operation.apply(target)
        return target

    def to_list(self) -> List[dict]:
        """Wire records, in order."""
        return [operation.to_dict() for operation in self.operations]

    def to_string(self) -> str:
        return "[" + ",".join(operation.to_string() for operation in self.operations) + "]"

    def __str__(self) -> str:
        return self.to_string()

    def __repr__(self) -> str:
        return f"Patch({self.to_list()!r})"

    @classmethod
    def from_list(cls, records: Iterable[Mapping]) -> "Patch":
        """Rebuild a patch from wire records."""
        return cls(Operation.from_dict(record) for record in records)

    @classmethod
    def from_string(cls, text: str) -> "Patch":
        """Rebuild a patch from its JSON array form."""
        try:
            records = json.loads(text)
        except json.JSONDecodeError as e:
            raise ArgumentError(f"Patch is not valid JSON: {e}") from e
        if not isinstance(records, list):
            raise ArgumentError(f"Patch must be a JSON array, got {type(records).__name__}")
        return cls.from_list(records)

    def __len__(self) -> int:
        return len(self.operations)

    def __iter__(self) -> Iterator[Operation]:
        return iter(self.operations)

    def __add__(self, other: "Patch") -> "Patch":
        if not isinstance(other, Patch):
            return NotImplemented
        return Patch(self.operations + other.operations)

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, Patch):
            return self.operations == other.operations
        return NotImplemented


# =============================================================================
# Diff
# =============================================================================

def _keys(value: Any) -> List[Any]:
    if isinstance(value, Mapping):
        return list(value.keys())
    return list(range(len(value)))


def _has(value: Any, key: Any) -> bool:
    if isinstance(value, Mapping):
        return key in value
    return 0 <= key < len(value)


def _diff(from_value: Any, to_value: Any, path: Pointer) -> List[Operation]:
    if not is_recursable(from_value) or not is_recursable(to_value):
        return []
    if not same_container_kind(from_value, to_value):
        return []

    operations: List[Operation] = []
    # List tails are removed back to front so earlier removals do not
    # shift the indices of later ones.
    removals: List[Operation] = operations if isinstance(from_value, Mapping) else []

    for key in _keys(from_value):
        old = from_value[key]
        if not _has(to_value, key):
            removals.append(RemoveOperation(path.add(key)))
            continue

        new = to_value[key]
        if deep_equal(old, new):
            continue
        if is_recursable(old) and is_recursable(new) and same_container_kind(old, new):
            operations.extend(_diff(old, new, path.add(key)))
        else:
            operations.append(ReplaceOperation(path.add(key), new, old))

    if removals is not operations:
        operations.extend(reversed(removals))

    for key in _keys(to_value):
        if not _has(from_value, key):
            operations.append(AddOperation(path.add(key), to_value[key]))

    return operations


def diff(from_value: Any, to_value: Any) -> Patch:
    """
    Compute the patch that turns ``from_value`` into ``to_value``.

    Only mappings and lists are compared structurally. If either input is
    not a structured container, the result is an empty patch.
    """
    operations = _diff(from_value, to_value, Pointer())
    logger.debug(f"diff produced {len(operations)} operations")
    return Patch(operations)
