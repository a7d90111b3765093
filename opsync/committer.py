import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from opsync.errors import CommitError
from opsync.models import ClassificationKind, ClassificationResult, CommitStats
from opsync.schema import CollectionSchema
from opsync.store import RecordStore

logger = logging.getLogger("UpsertCommitter")

WRITABLE_KINDS = (ClassificationKind.NEW, ClassificationKind.UPDATED)


class UpsertCommitter:
    """
    Writes New and Updated records to the local store in fixed-size chunks.

    A chunk is atomic; the whole commit is not. When a chunk fails the
    earlier chunks stay written and CommitError.committed says how many.
    Re-running the same commit is safe since every write is an upsert on
    the natural key.
    """

    def __init__(self, schema: CollectionSchema, store: RecordStore, batch_size: Optional[int] = None):
        self.schema = schema
        self.store = store
        self.batch_size = batch_size or store.batch_size

    def build_rows(self, results: List[ClassificationResult]) -> List[dict]:
        now = datetime.now(timezone.utc).isoformat()
        rows = []
        for result in results:
            row = self.schema.to_row(result.incoming)
            for column in self.schema.audit_columns:
                row[column] = now
            rows.append(row)
        return rows

    def commit(self, results: Iterable[ClassificationResult]) -> CommitStats:
        writable = [r for r in results if r.kind in WRITABLE_KINDS]
        stats = CommitStats()
        if not writable:
            return stats

        rows = self.build_rows(writable)
        written = 0
        try:
            for size in self.store.upsert_chunks(rows, self.batch_size):
                for result in writable[written:written + size]:
                    if result.kind is ClassificationKind.NEW:
                        stats.created += 1
                    else:
                        stats.updated += 1
                written += size
                stats.chunks += 1
                logger.info(f"[{self.schema.name}] Committed chunk {stats.chunks} ({written}/{len(rows)})")
        except Exception as e:
            logger.error(f"[{self.schema.name}] Commit failed after {written}/{len(rows)} records: {e}")
            raise CommitError(f"Database error: {e}", committed=written, cause=e) from e

        return stats
