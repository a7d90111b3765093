"""
===================================================================================
RECONCILE SYNC SERVICE - one independent pipeline per record collection
===================================================================================

    SourceFetcher -> normalize_records -> deduplicate -> classify
        -> ReviewCoordinator (manual, with operator pause)
        -> UpsertCommitter -> DailySyncGuard

The automatic path runs the same chain without the pause, gated by the
daily guard. Both paths share one lock, so at most one analyze or commit
is in flight per collection. Local CRUD and the outbound push are
independent of the chain.

Subclasses provide `schema` (a CollectionSchema).
"""

import asyncio
import time
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from fastapi.concurrency import run_in_threadpool

from opsync.committer import UpsertCommitter
from opsync.config import source_url_for
from opsync.errors import FetchError, GuardWriteError
from opsync.fetcher import SourceFetcher
from opsync.guard import DailySyncGuard
from opsync.logging_service import SyncLogger, setup_logger
from opsync.models import AutoSyncStatus, Classification, CommitStats, SyncType
from opsync.normalizer import normalize_records
from opsync.push import OutboundPusher
from opsync.reconcile import classify, deduplicate
from opsync.records import LocalRecordService
from opsync.review import ReviewCoordinator
from opsync.schema import CollectionSchema
from opsync.store import RecordStore, StateStore


class ReconcileSyncService:

    schema: CollectionSchema = None

    def __init__(
        self,
        client: Any = None,
        fetcher: Optional[SourceFetcher] = None,
        pusher: Optional[OutboundPusher] = None,
        clock: Optional[Callable[[], datetime]] = None,
        batch_size: Optional[int] = None,
    ):
        if self.schema is None:
            raise TypeError(f"{type(self).__name__} must define a schema")

        self.name = self.schema.name
        self.logger = setup_logger(f"{self.name.capitalize()}Sync")
        self.sync_logger = SyncLogger(f"{self.name}_sync", client)

        url = source_url_for(self.name)
        self.store = RecordStore(self.schema.table, self.schema.key_column, client)
        self.fetcher = fetcher or SourceFetcher(url)
        self.pusher = pusher or OutboundPusher(self.schema, url)
        self.guard = DailySyncGuard(self.name, StateStore(client), clock)
        self.committer = UpsertCommitter(self.schema, self.store, batch_size)
        self.records = LocalRecordService(self.schema, self.store, self.pusher)

        self.lock = asyncio.Lock()
        self.review = ReviewCoordinator(self.name, self.analyze_source, self.commit_reviewed, self.lock)
        self.auto_status = AutoSyncStatus()

    # ------------------------------------------------------------------
    # Pipeline stages
    # ------------------------------------------------------------------

    async def analyze_source(self) -> Classification:
        """Fetch, normalize, deduplicate and classify against the local store."""
        rows = await self.fetcher.fetch()

        records, skipped = normalize_records(rows, self.schema)
        if not records:
            # No row carried a natural key: the header or payload is not this collection's shape
            raise FetchError(f"None of the {len(rows)} fetched rows has a {self.schema.name} key")
        unique = deduplicate(records)

        local_rows = await run_in_threadpool(self.store.select_all)
        local_records = [self.schema.from_row(row) for row in local_rows]

        classification = classify(unique, local_records, self.schema)
        classification.fetched = len(rows)
        classification.skipped = skipped
        classification.duplicates = len(records) - len(unique)
        return classification

    async def _commit(self, classification: Classification, sync_type: SyncType) -> CommitStats:
        stats = await run_in_threadpool(self.committer.commit, classification.pending)

        try:
            await run_in_threadpool(self.guard.record_sync, sync_type, stats.total)
        except GuardWriteError as e:
            # The commit already succeeded; a missing guard only means a later auto run may repeat it
            self.sync_logger.log_warning('guard_write', str(e))

        return stats

    async def commit_reviewed(self, classification: Classification) -> CommitStats:
        stats = await self._commit(classification, SyncType.MANUAL)
        self.auto_status.set_done(self.guard.today(), stats.total, False, SyncType.MANUAL)
        self.sync_logger.log_success(
            'manual_commit',
            f"Committed {stats.created} new, {stats.updated} updated",
            stats.to_dict(),
        )
        return stats

    # ------------------------------------------------------------------
    # Manual path (operator review)
    # ------------------------------------------------------------------

    async def analyze(self) -> Optional[Classification]:
        self.sync_logger.log_start("manual analyze")
        try:
            return await self.review.analyze()
        except Exception as e:
            self.sync_logger.log_error('analyze', str(e))
            raise

    async def confirm(self) -> CommitStats:
        try:
            return await self.review.confirm()
        except Exception as e:
            self.sync_logger.log_error('manual_commit', str(e))
            raise

    def cancel(self):
        self.review.cancel()

    # ------------------------------------------------------------------
    # Automatic path (once per day, no review pause)
    # ------------------------------------------------------------------

    async def run_daily_sync(self) -> Dict[str, Any]:
        """
        Run the full chain and auto-commit, unless today's sync already happened.

        Never raises: failures are reported in the returned dict and leave
        the guard untouched so a later trigger the same day retries.
        """
        if self.lock.locked():
            self.logger.warning(f"Sync already in progress for {self.name}, skipping")
            return {'synced': False, 'reason': 'sync_already_in_progress'}

        async with self.lock:
            start_time = time.time()
            self.auto_status.set_checking()
            try:
                guard_state = await run_in_threadpool(self.guard.read)
                if self.guard.is_synced_today(guard_state):
                    self.auto_status.set_done(self.guard.today(), 0, True, SyncType.parse(guard_state.last_sync_type))
                    self.logger.info(f"{self.name} already synced today ({guard_state.last_sync_type}), skipping")
                    return {'synced': False, 'reason': 'already_synced'}

                if not self.fetcher.url:
                    self.auto_status.set_error('No source URL configured')
                    return {'synced': False, 'reason': 'no_url'}

                self.auto_status.set_syncing()
                self.sync_logger.log_start("auto sync")

                classification = await self.analyze_source()
                stats = await self._commit(classification, SyncType.AUTO)
            except Exception as e:
                self.auto_status.set_error(str(e))
                self.sync_logger.log_error('auto_sync', str(e))
                return {'synced': False, 'reason': 'error', 'error': str(e)}

            self.auto_status.set_done(self.guard.today(), stats.total, False, SyncType.AUTO)
            result = {
                'synced': True,
                'count': stats.total,
                'created': stats.created,
                'updated': stats.updated,
                'unchanged': len(classification.unchanged),
                'skipped': classification.skipped,
                'elapsed_seconds': round(time.time() - start_time, 2),
            }
            self.sync_logger.log_success('auto_sync', f"Synced {stats.total} records", result)
            return result

    def health(self) -> Dict[str, Any]:
        return {
            'review': self.review.snapshot(),
            'auto': self.auto_status.to_dict(),
            'sync_in_progress': self.lock.locked(),
            'pending_pushes': self.pusher.pending,
        }
