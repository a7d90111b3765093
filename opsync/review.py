"""
Two-phase review workflow: analyze, let an operator inspect the diff, then
confirm or cancel.

    IDLE -> ANALYZING -> REVIEWING -> COMMITTING -> DONE
                 |            ^            |
                 v            |            v
               IDLE           +-------- FAILED

One coordinator per collection owns the current step and classification.
Nothing here is module-global.
"""

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Dict, Any, Optional

from opsync.errors import CommitError, InvalidTransitionError, SyncInProgressError
from opsync.models import Classification, CommitStats

logger = logging.getLogger("ReviewCoordinator")


class ReviewState(Enum):
    IDLE = "idle"
    ANALYZING = "analyzing"
    REVIEWING = "reviewing"
    COMMITTING = "committing"
    DONE = "done"
    FAILED = "failed"


ANALYZE_FROM = (ReviewState.IDLE, ReviewState.REVIEWING, ReviewState.DONE)


class ReviewCoordinator:
    """
    Args:
        collection: Collection name, for logs and errors.
        analyze: Coroutine function running fetch -> normalize -> dedup -> classify.
        commit: Coroutine function writing a classification, returning CommitStats.
        lock: Per-collection lock shared with the automatic path.
    """

    def __init__(
        self,
        collection: str,
        analyze: Callable[[], Awaitable[Classification]],
        commit: Callable[[Classification], Awaitable[CommitStats]],
        lock: Optional[asyncio.Lock] = None,
    ):
        self.collection = collection
        self._analyze = analyze
        self._commit = commit
        self._lock = lock or asyncio.Lock()
        self._generation = 0

        self.state = ReviewState.IDLE
        self.classification: Optional[Classification] = None
        self.error: Optional[str] = None
        self.last_commit: Optional[CommitStats] = None

    @property
    def can_confirm(self) -> bool:
        return (
            self.state is ReviewState.REVIEWING
            and self.classification is not None
            and self.classification.has_changes
        )

    def _acquire_check(self):
        if self._lock.locked():
            raise SyncInProgressError(self.collection)

    async def analyze(self) -> Optional[Classification]:
        """
        Run (or re-run) the analysis. Any previous classification is discarded.

        A failure returns to IDLE with the error kept for display and is
        re-raised. Returns None if the run was cancelled while in flight.
        """
        self._acquire_check()
        if self.state not in ANALYZE_FROM:
            raise InvalidTransitionError("analyze", self.state.value)

        async with self._lock:
            self._generation += 1
            generation = self._generation
            self.classification = None
            self.error = None
            self.state = ReviewState.ANALYZING
            logger.info(f"[{self.collection}] Analyzing source")

            try:
                classification = await self._analyze()
            except Exception as e:
                if generation == self._generation:
                    self.state = ReviewState.IDLE
                    self.error = str(e)
                logger.error(f"[{self.collection}] Analyze failed: {e}")
                raise

            if generation != self._generation:
                logger.info(f"[{self.collection}] Analysis finished after cancel, discarding")
                return None

            self.classification = classification
            self.state = ReviewState.REVIEWING
            return classification

    async def confirm(self) -> CommitStats:
        """
        Commit the New and Updated records of the current classification.

        On failure the coordinator passes through FAILED back to REVIEWING
        with the classification intact, so the commit can be retried.
        """
        if self.state is not ReviewState.REVIEWING:
            raise InvalidTransitionError("confirm", self.state.value)
        if not self.can_confirm:
            raise InvalidTransitionError("confirm without pending changes", self.state.value)
        self._acquire_check()

        async with self._lock:
            generation = self._generation
            classification = self.classification
            self.error = None
            self.state = ReviewState.COMMITTING

            try:
                stats = await self._commit(classification)
            except Exception as e:
                error = e if isinstance(e, CommitError) else CommitError(f"Database error: {e}", cause=e)
                if generation == self._generation:
                    self.state = ReviewState.FAILED
                    self.error = str(error)
                    logger.error(f"[{self.collection}] Commit failed, back to review: {error}")
                    self.state = ReviewState.REVIEWING
                if error is e:
                    raise
                raise error from e

            self.last_commit = stats
            if generation == self._generation:
                self.classification = None
                self.state = ReviewState.DONE
            return stats

    def cancel(self):
        """Return to IDLE, dropping any classification. The store is not touched."""
        self._generation += 1
        self.classification = None
        self.error = None
        self.state = ReviewState.IDLE

    def snapshot(self, include_records: bool = False) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            'collection': self.collection,
            'state': self.state.value,
            'error': self.error,
            'can_confirm': self.can_confirm,
            'busy': self._lock.locked(),
            'summary': self.classification.summary() if self.classification else None,
            'last_commit': self.last_commit.to_dict() if self.last_commit else None,
        }
        if include_records and self.classification is not None:
            data['classification'] = self.classification.to_dict()
        return data
