"""
Exception types for the reconciliation engine.

Inbound failures (fetch) are fatal to the current run, commit failures are
recoverable from the review step, and guard/push failures are side-channel
only: they are logged and never change the outcome seen by the caller.
"""

from typing import Optional


class SyncError(Exception):
    """Base class for all sync engine errors."""


class FetchError(SyncError):
    """The external source could not be read or returned no usable rows."""


class CommitError(SyncError):
    """A write to the local store failed partway through a commit."""

    def __init__(self, message: str, committed: int = 0, cause: Optional[Exception] = None):
        self.committed = committed
        self.cause = cause
        super().__init__(message)


class GuardWriteError(SyncError):
    """The daily sync guard could not be persisted."""


class PushError(SyncError):
    """An outbound push to the external source failed."""


class SyncInProgressError(SyncError):
    """Another analyze or commit cycle is already running for this collection."""

    def __init__(self, collection: str):
        self.collection = collection
        super().__init__(f"A sync cycle is already running for '{collection}'")


class InvalidTransitionError(SyncError):
    """A review action was requested from a state that does not allow it."""

    def __init__(self, action: str, state: str):
        self.action = action
        self.state = state
        super().__init__(f"Cannot {action} while in state '{state}'")


class RecordValidationError(SyncError):
    pass


class RecordExistsError(SyncError):
    pass


class RecordNotFoundError(SyncError):
    pass
