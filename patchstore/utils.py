"""
Small value helpers shared by the patch, query and store packages.
"""

from collections.abc import Mapping
from typing import Any

PRIMITIVE_TYPES = (str, bytes, int, float, bool, type(None))


def is_recursable(value: Any) -> bool:
    """
    Check if a value is a plain structured container.

    Only mappings and lists count. Strings, tuples and arbitrary objects
    are treated as leaf values by the diff engine.
    """
    return isinstance(value, (Mapping, list))


def same_container_kind(a: Any, b: Any) -> bool:
    """Both mappings or both lists."""
    if isinstance(a, Mapping) and isinstance(b, Mapping):
        return True
    return isinstance(a, list) and isinstance(b, list)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def deep_equal(a: Any, b: Any) -> bool:
    """
    Recursive structural equality.

    Unlike ``==``, booleans never compare equal to numbers
    (``deep_equal(True, 1)`` is False).
    """
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b

    if _is_number(a) and _is_number(b):
        return a == b

    if isinstance(a, Mapping) and isinstance(b, Mapping):
        if len(a) != len(b):
            return False
        for key in a:
            if key not in b or not deep_equal(a[key], b[key]):
                return False
        return True

    if isinstance(a, (list, tuple)) and isinstance(b, (list, tuple)):
        if type(a) is not type(b) or len(a) != len(b):
            return False
        return all(deep_equal(x, y) for x, y in zip(a, b))

    if type(a) is not type(b):
        return False
    return a == b


def strict_equal(a: Any, b: Any) -> bool:
    """
    Identity-style equality.

    Primitives compare by value (with booleans kept apart from numbers),
    everything else compares by identity.
    """
    if isinstance(a, PRIMITIVE_TYPES) and isinstance(b, PRIMITIVE_TYPES):
        if isinstance(a, bool) or isinstance(b, bool):
            return isinstance(a, bool) and isinstance(b, bool) and a == b
        if _is_number(a) and _is_number(b):
            return a == b
        return type(a) is type(b) and a == b
    return a is b


def lookup(container: Any, key: Any, default: Any = None) -> Any:
    """Get ``key`` from a mapping, falling back to attribute access."""
    if isinstance(container, Mapping):
        return container.get(key, default)
    if container is None:
        return default
    try:
        return getattr(container, str(key))
    except AttributeError:
        return default
