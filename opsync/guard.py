"""
Daily sync guard.

One persisted record per collection in sync_state, key
"{collection}_sync_guard". Once last_sync_date equals today's UTC date no
automatic run executes again that day, whichever path wrote it.

The read-decide-write sequence is not atomic across processes: two
schedulers checking at the same moment can both run. Within one process the
collection lock serializes it.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from opsync.errors import GuardWriteError
from opsync.models import SyncGuardState, SyncType
from opsync.store import StateStore

logger = logging.getLogger("DailySyncGuard")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class DailySyncGuard:

    def __init__(self, collection: str, state_store: StateStore, clock: Optional[Callable[[], datetime]] = None):
        self.collection = collection
        self.state_store = state_store
        self.clock = clock or utc_now

    @property
    def key(self) -> str:
        return f"{self.collection}_sync_guard"

    def today(self) -> str:
        return self.clock().astimezone(timezone.utc).date().isoformat()

    def read(self) -> SyncGuardState:
        return SyncGuardState.from_dict(self.state_store.read(self.key))

    def is_synced_today(self, state: Optional[SyncGuardState] = None) -> bool:
        state = state or self.read()
        return state.last_sync_date == self.today()

    def record_sync(self, sync_type: SyncType, updated_count: int) -> SyncGuardState:
        """Mark today as synced. Raises GuardWriteError if the write fails."""
        fields = {
            'last_sync_date': self.today(),
            'last_sync_type': sync_type.value,
            'last_run_at': self.clock().astimezone(timezone.utc).isoformat(),
            'updated_count': updated_count,
        }
        try:
            merged = self.state_store.merge_write(self.key, fields)
        except Exception as e:
            raise GuardWriteError(f"Failed to update sync guard for {self.collection}: {e}") from e

        logger.info(f"[{self.collection}] Guard set: {fields['last_sync_date']} ({sync_type.value}, {updated_count} records)")
        return SyncGuardState.from_dict(merged)
