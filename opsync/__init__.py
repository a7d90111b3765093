"""
Sheet reconciliation engine for the operations dashboard.

Pulls rows from an external sheet endpoint, normalizes and diffs them
against the local store, and commits reviewed upserts.
"""

from opsync.errors import (
    SyncError,
    FetchError,
    CommitError,
    GuardWriteError,
    PushError,
    SyncInProgressError,
    InvalidTransitionError,
)
from opsync.models import (
    NormalizedRecord,
    LocalRecord,
    ClassificationKind,
    ClassificationResult,
    Classification,
    SyncGuardState,
    SyncType,
)
from opsync.schema import CollectionSchema

__all__ = [
    'SyncError',
    'FetchError',
    'CommitError',
    'GuardWriteError',
    'PushError',
    'SyncInProgressError',
    'InvalidTransitionError',
    'NormalizedRecord',
    'LocalRecord',
    'ClassificationKind',
    'ClassificationResult',
    'Classification',
    'SyncGuardState',
    'SyncType',
    'CollectionSchema',
]
