"""
Pointers into structured values.

A Pointer is an immutable sequence of unescaped string segments. Its
string form follows JSON Pointer escaping: ``~`` becomes ``~0``, ``/``
becomes ``~1`` and every segment is prefixed with ``/``.

Example:
    p = pointer("key", "a/b")
    str(p)                  # '/key/a~1b'
    Pointer.parse(str(p))   # Pointer('/key/a~1b')
    navigate(p, {"key": {"a/b": 1}})  # 1
"""

from collections.abc import Mapping
from typing import Any, Iterable, Iterator, Tuple, Union

from patchstore.errors import AddressError, ArgumentError


class _Absent:
    """Sentinel for "this path does not exist"."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "ABSENT"


ABSENT = _Absent()


def encode_segment(segment: str) -> str:
    """Escape a single segment."""
    return segment.replace("~", "~0").replace("/", "~1")


def decode_segment(segment: str) -> str:
    """Unescape a single segment."""
    return segment.replace("~1", "/").replace("~0", "~")


class Pointer:
    """
    Immutable path to a nested field.

    Two pointers are equal iff their segment sequences are equal.
    """

    __slots__ = ("_segments",)

    def __init__(self, *segments: str):
        object.__setattr__(self, "_segments", tuple(str(s) for s in segments))

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("Pointer is immutable")

    @classmethod
    def parse(cls, text: str) -> "Pointer":
        """
        Decode an encoded pointer string.

        The empty string is the root pointer; anything else must start
        with ``/``.
        """
        if text == "":
            return cls()
        if not text.startswith("/"):
            raise ArgumentError(f"Pointer must start with '/': {text!r}")
        return cls(*(decode_segment(part) for part in text[1:].split("/")))

    @property
    def segments(self) -> Tuple[str, ...]:
        """Decoded segments."""
        return self._segments

    @property
    def parent(self) -> "Pointer":
        """Pointer to the containing value (root stays root)."""
        return Pointer(*self._segments[:-1])

    @property
    def last(self) -> str:
        """Final segment, or '' for the root pointer."""
        return self._segments[-1] if self._segments else ""

    @property
    def is_root(self) -> bool:
        return not self._segments

    def add(self, segment: Any) -> "Pointer":
        """Return a new pointer with one more segment."""
        return Pointer(*self._segments, str(segment))

    def to_string(self) -> str:
        return "".join("/" + encode_segment(s) for s in self._segments)

    def __str__(self) -> str:
        return self.to_string()

    def __repr__(self) -> str:
        return f"Pointer({self.to_string()!r})"

    def __len__(self) -> int:
        return len(self._segments)

    def __iter__(self) -> Iterator[str]:
        return iter(self._segments)

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, Pointer):
            return self._segments == other._segments
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._segments)

    def __reduce__(self):
        return (Pointer, self._segments)


PointerLike = Union[Pointer, str, Iterable[str]]


def pointer(*segments: str) -> Pointer:
    """Build a pointer from unescaped segments."""
    return Pointer(*segments)


def as_pointer(value: PointerLike) -> Pointer:
    """
    Coerce a pointer-like value.

    Accepts a Pointer, an encoded string (``""`` or starting with ``/``),
    a plain field name (one segment) or a sequence of segments.
    """
    if isinstance(value, Pointer):
        return value
    if isinstance(value, str):
        if value == "" or value.startswith("/"):
            return Pointer.parse(value)
        return Pointer(value)
    try:
        return Pointer(*value)
    except TypeError:
        raise ArgumentError(f"Cannot build a pointer from {value!r}") from None


# =============================================================================
# Navigation
# =============================================================================

def parse_index(segment: str) -> int:
    """Parse a list index segment, -1 if it is not a decimal index."""
    if segment.isdigit():
        return int(segment)
    return -1


def get_slot(container: Any, segment: str) -> Any:
    """Read one level, returning ABSENT when the slot does not exist."""
    if isinstance(container, Mapping):
        return container.get(segment, ABSENT)
    if isinstance(container, (list, tuple)):
        index = parse_index(segment)
        if 0 <= index < len(container):
            return container[index]
        return ABSENT
    if container is None or container is ABSENT or isinstance(container, (str, bytes, int, float)):
        return ABSENT
    return getattr(container, segment, ABSENT)


def has_slot(container: Any, segment: str) -> bool:
    return get_slot(container, segment) is not ABSENT


def navigate(path: PointerLike, target: Any) -> Any:
    """
    Follow ``path`` through ``target``.

    Returns the resolved value or ABSENT as soon as any step is missing.
    Never raises for missing paths.
    """
    current = target
    for segment in as_pointer(path).segments:
        current = get_slot(current, segment)
        if current is ABSENT:
            return ABSENT
    return current


def resolve_parent(path: Pointer, target: Any) -> Tuple[Any, str]:
    """
    Walk to the container holding the last segment of ``path``.

    Returns (container, final segment). Raises AddressError naming the
    failing prefix if an intermediate container is missing.
    """
    if path.is_root:
        raise AddressError("Cannot resolve the parent of the root pointer", "")

    current = target
    walked = Pointer()
    for segment in path.segments[:-1]:
        walked = walked.add(segment)
        current = get_slot(current, segment)
        if current is ABSENT or not isinstance(current, (Mapping, list)):
            raise AddressError(
                f"Invalid path: {walked} doesn't exist in target", str(walked)
            )

    if not isinstance(current, (Mapping, list)):
        raise AddressError(f"Invalid path: {path} has no container", str(path.parent))
    return current, path.segments[-1]
