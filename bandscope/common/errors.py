"""
Error kinds raised by the storage layer.

Every store operation either returns a value or raises one of these. They
subclass the matching builtin so callers that already catch
``FileNotFoundError``/``OSError``/``ValueError`` keep working.
"""

from __future__ import annotations


class StoreError(Exception):
    """Base class for storage failures."""


class NotFound(StoreError, FileNotFoundError):
    """A referenced project, resource, or file does not exist."""


class IoFailure(StoreError, OSError):
    """An underlying read, write, copy, or remove failed."""


class Corrupt(StoreError, ValueError):
    """Metadata bytes are present but do not decode to the expected record."""


class StorageUnavailable(StoreError, OSError):
    """The storage root cannot be determined or created."""
