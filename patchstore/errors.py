"""
Exception hierarchy for patchstore.

All errors raised by the library derive from PatchStoreError so callers
can catch everything at once, or narrow down to a specific failure.
"""

from typing import Any, Optional


class PatchStoreError(Exception):
    """Base exception for all patchstore errors."""
    pass


class AddressError(PatchStoreError):
    """Raised when a write-oriented walk hits a missing intermediate container."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class PreconditionError(PatchStoreError):
    """Raised when an operation requires a slot that is not there."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class ArgumentError(PatchStoreError, ValueError):
    """Raised for malformed factory inputs (e.g. Move without 'from')."""
    pass


class DuplicateIdentityError(PatchStoreError):
    """Raised when an id is already present in the store."""

    def __init__(self, message: str, id: Any = None):
        super().__init__(message)
        self.id = id


class UnknownIdentityError(PatchStoreError, KeyError):
    """Raised when an id is not present in the store."""

    def __init__(self, message: str, id: Any = None):
        super().__init__(message)
        self.id = id

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return str(self.args[0]) if self.args else ""


class SerializationUnsupportedError(PatchStoreError):
    """Raised when serializing a filter or sort built from an opaque callable."""
    pass


class ParseError(PatchStoreError):
    """Error parsing a query string or query definition."""
    pass
