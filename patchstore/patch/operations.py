"""
Patch operations.

Six operation types, each carrying a target pointer plus its own payload:

- AddOperation(path, value): set the slot (create or overwrite)
- RemoveOperation(path): delete the slot
- ReplaceOperation(path, value, old_value): overwrite an existing slot
- MoveOperation(path, from_): relocate an existing slot
- CopyOperation(path, from_): duplicate an existing slot
- TestOperation(path, value): compare without mutating

Every operation validates its addresses before writing, so a failing
operation leaves the target untouched.
"""

import copy
import json
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, Optional, Union

from patchstore.errors import AddressError, ArgumentError, PreconditionError
from patchstore.patch.pointer import (
    ABSENT,
    Pointer,
    PointerLike,
    as_pointer,
    get_slot,
    navigate,
    parse_index,
    resolve_parent,
)
from patchstore.utils import deep_equal


class OperationType(Enum):
    """Operation discriminant, valued by its wire name."""
    ADD = "add"
    REMOVE = "remove"
    REPLACE = "replace"
    MOVE = "move"
    COPY = "copy"
    TEST = "test"

    @classmethod
    def from_string(cls, s: str) -> "OperationType":
        try:
            return cls(s.lower().strip())
        except (ValueError, AttributeError):
            raise ArgumentError(f"Unknown operation type: {s!r}") from None


# =============================================================================
# Slot helpers
# =============================================================================

def _set_slot(container: Any, segment: str, value: Any, path: Pointer) -> None:
    if isinstance(container, list):
        if segment == "-":
            index = len(container)
        else:
            index = parse_index(segment)
        if index < 0 or index > len(container):
            raise AddressError(f"Invalid path: {path} is outside the list", str(path))
        if index == len(container):
            container.append(value)
        else:
            container[index] = value
    else:
        container[segment] = value


def _delete_slot(container: Any, segment: str) -> None:
    if isinstance(container, list):
        index = parse_index(segment)
        if 0 <= index < len(container):
            del container[index]
    elif segment in container:
        del container[segment]


def _require_slot(path: Pointer, target: Any, verb: str) -> Any:
    """Resolve an existing slot or raise PreconditionError."""
    container, segment = resolve_parent(path, target)
    value = get_slot(container, segment)
    if value is ABSENT:
        raise PreconditionError(
            f"Cannot {verb} undefined path: {path} on object", str(path)
        )
    return container, segment, value


# =============================================================================
# Operations
# =============================================================================

class Operation(ABC):
    """
    Abstract base for patch operations.

    Subclasses set ``op_type`` and implement apply(). apply() receives the
    target value and returns the (possibly new) target value; only
    TestOperation returns a boolean instead.
    """

    op_type: ClassVar[OperationType]
    path: Pointer

    @property
    def op(self) -> str:
        """Wire name of the operation."""
        return self.op_type.value

    @abstractmethod
    def apply(self, target: Any) -> Any:
        """Apply this operation to ``target``."""
        pass

    def to_dict(self) -> Dict[str, Any]:
        """Wire record: op, path, and value/from only when present."""
        record: Dict[str, Any] = {"op": self.op, "path": str(self.path)}
        value = getattr(self, "value", ABSENT)
        if value is not ABSENT:
            record["value"] = value
        from_ = getattr(self, "from_", None)
        if from_ is not None:
            record["from"] = str(from_)
        return record

    def to_string(self) -> str:
        return json.dumps(self.to_dict(), default=str)

    def __str__(self) -> str:
        return self.to_string()

    @classmethod
    def from_dict(cls, record: Mapping) -> "Operation":
        """Rebuild an operation from its wire record."""
        if not isinstance(record, Mapping):
            raise ArgumentError(f"Operation record must be a mapping, got {type(record).__name__}")
        if "op" not in record or "path" not in record:
            raise ArgumentError(f"Operation record requires 'op' and 'path': {record!r}")

        from_ = record.get("from")
        return operation_factory(
            record["op"],
            Pointer.parse(record["path"]),
            value=record.get("value", ABSENT),
            from_=Pointer.parse(from_) if from_ is not None else None,
        )


@dataclass
class AddOperation(Operation):
    """Set the value at path, creating or overwriting the slot."""
    path: Pointer
    value: Any

    op_type: ClassVar[OperationType] = OperationType.ADD

    def apply(self, target: Any) -> Any:
        if self.path.is_root:
            return self.value
        container, segment = resolve_parent(self.path, target)
        _set_slot(container, segment, self.value, self.path)
        return target


@dataclass
class RemoveOperation(Operation):
    """Delete the slot at path."""
    path: Pointer

    op_type: ClassVar[OperationType] = OperationType.REMOVE

    def apply(self, target: Any) -> Any:
        container, segment = resolve_parent(self.path, target)
        _delete_slot(container, segment)
        return target


@dataclass
class ReplaceOperation(Operation):
    """
    Overwrite an existing slot.

    ``old_value`` records what the diff engine saw before; it is not part
    of the wire record.
    """
    path: Pointer
    value: Any
    old_value: Any = field(default=None, compare=False)

    op_type: ClassVar[OperationType] = OperationType.REPLACE

    def apply(self, target: Any) -> Any:
        if self.path.is_root:
            return self.value
        container, segment, _ = _require_slot(self.path, target, "replace")
        _set_slot(container, segment, self.value, self.path)
        return target


@dataclass
class MoveOperation(Operation):
    """Relocate the value at ``from_`` to ``path``."""
    path: Pointer
    from_: Pointer

    op_type: ClassVar[OperationType] = OperationType.MOVE

    def apply(self, target: Any) -> Any:
        if self.from_ == self.path:
            _require_slot(self.from_, target, "move from")
            return target
        if self.path.segments[:len(self.from_)] == self.from_.segments:
            raise AddressError(
                f"Cannot move {self.from_} into its own child {self.path}", str(self.path)
            )

        source, source_segment, value = _require_slot(self.from_, target, "move from")
        resolve_parent(self.path, target)

        _delete_slot(source, source_segment)
        container, segment = resolve_parent(self.path, target)
        _set_slot(container, segment, value, self.path)
        return target


@dataclass
class CopyOperation(Operation):
    """Duplicate the value at ``from_`` into ``path``."""
    path: Pointer
    from_: Pointer

    op_type: ClassVar[OperationType] = OperationType.COPY

    def apply(self, target: Any) -> Any:
        if self.path.is_root:
            raise AddressError(f"Cannot copy {self.from_} onto the root", "")
        _, _, value = _require_slot(self.from_, target, "copy from")
        container, segment = resolve_parent(self.path, target)
        _set_slot(container, segment, copy.deepcopy(value), self.path)
        return target


@dataclass
class TestOperation(Operation):
    """Check that the value at path deep-equals ``value``. Never mutates."""
    path: Pointer
    value: Any

    op_type: ClassVar[OperationType] = OperationType.TEST
    __test__ = False  # keep pytest from collecting this class

    def apply(self, target: Any) -> bool:
        return deep_equal(navigate(self.path, target), self.value)


OPERATION_CLASSES = {
    OperationType.ADD: AddOperation,
    OperationType.REMOVE: RemoveOperation,
    OperationType.REPLACE: ReplaceOperation,
    OperationType.MOVE: MoveOperation,
    OperationType.COPY: CopyOperation,
    OperationType.TEST: TestOperation,
}


def operation_factory(
    op_type: Union[OperationType, str],
    path: PointerLike,
    value: Any = ABSENT,
    from_: Optional[PointerLike] = None,
    old_value: Any = None,
) -> Operation:
    """
    Build an operation, validating the inputs each type requires.

    Args:
        op_type: OperationType or its wire name
        path: Target pointer (Pointer, encoded string or segment list)
        value: Payload for add/replace/test
        from_: Source pointer for move/copy
        old_value: Previous value, recorded on replace only

    Raises:
        ArgumentError: If a required input is missing
    """
    if not isinstance(op_type, OperationType):
        op_type = OperationType.from_string(op_type)
    path = as_pointer(path)

    if op_type in (OperationType.MOVE, OperationType.COPY):
        if from_ is None:
            raise ArgumentError(f"From value is required for {op_type.value} operations")
        return OPERATION_CLASSES[op_type](path, as_pointer(from_))

    if op_type is OperationType.REMOVE:
        return RemoveOperation(path)

    if value is ABSENT:
        raise ArgumentError(f"A value is required for {op_type.value} operations")

    if op_type is OperationType.REPLACE:
        return ReplaceOperation(path, value, old_value)
    return OPERATION_CLASSES[op_type](path, value)
