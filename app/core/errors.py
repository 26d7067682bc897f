"""
Error taxonomy for the conversation store.

Domain errors (NotFoundError, ValidationError) map to 404/400 responses.
StorageError covers backend I/O and database failures and maps to a generic 500.
Duplicate appends are not errors: the store returns the stored message.
"""

from __future__ import annotations


class StoreError(Exception):
    """Base class for every error raised by the conversation store."""


class NotFoundError(StoreError):
    def __init__(self, resource: str, identifier: str) -> None:
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} {identifier!r} not found")


class ValidationError(StoreError):
    """Malformed input, e.g. an import payload with an unsupported version."""


class StorageError(StoreError):
    """The backing storage failed. The original exception is chained as __cause__."""
