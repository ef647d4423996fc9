"""Error taxonomy for the dispatch grid."""

from __future__ import annotations


class DispatchError(Exception):
    """Base class for all dispatch grid errors."""


class LoadError(DispatchError):
    """A day's entries or the technician list could not be fetched.

    Non-fatal: the grid renders empty with a visible error banner.
    """


class NotFoundError(DispatchError):
    """A drop referenced a work item or entry that is not currently loaded."""


class PersistenceError(DispatchError):
    """A create/update/delete write failed after it was sent."""

    def __init__(self, operation: str, key: str, message: str):
        self.operation = operation
        self.key = key
        self.message = message
        super().__init__(f"Failed to {operation} schedule entry {key}: {message}")


class InvariantRejection(DispatchError):
    """A candidate span violates ordering, minimum duration or day bounds.

    Expected during gestures and never shown to the user.
    """
