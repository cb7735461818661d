"""
Structural diff and patch.

Example:
    from patchstore.patch import diff, pointer, navigate

    patch = diff({"a": 1}, {"a": 2, "b": 3})
    patch.apply({"a": 1})           # {'a': 2, 'b': 3}
    navigate(pointer("a"), {"a": 1})  # 1
"""

from patchstore.patch.pointer import (
    ABSENT,
    Pointer,
    PointerLike,
    as_pointer,
    decode_segment,
    encode_segment,
    navigate,
    pointer,
    resolve_parent,
)

from patchstore.patch.operations import (
    Operation,
    OperationType,
    AddOperation,
    RemoveOperation,
    ReplaceOperation,
    MoveOperation,
    CopyOperation,
    TestOperation,
    operation_factory,
)

from patchstore.patch.patch import Patch, diff

__all__ = [
    # Pointer
    "ABSENT",
    "Pointer",
    "PointerLike",
    "as_pointer",
    "decode_segment",
    "encode_segment",
    "navigate",
    "pointer",
    "resolve_parent",
    # Operations
    "Operation",
    "OperationType",
    "AddOperation",
    "RemoveOperation",
    "ReplaceOperation",
    "MoveOperation",
    "CopyOperation",
    "TestOperation",
    "operation_factory",
    # Patch
    "Patch",
    "diff",
]
