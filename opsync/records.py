"""
Local create / update / delete for one collection.

Each mutation is mirrored to the external source through the outbound
pusher after the local write succeeds. The push is detached: its outcome
never reaches the caller.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi.concurrency import run_in_threadpool

from opsync.errors import RecordExistsError, RecordNotFoundError, RecordValidationError
from opsync.push import OutboundPusher
from opsync.schema import CollectionSchema, stringify
from opsync.store import RecordStore

logger = logging.getLogger("LocalRecords")


class LocalRecordService:

    def __init__(self, schema: CollectionSchema, store: RecordStore, pusher: OutboundPusher):
        self.schema = schema
        self.store = store
        self.pusher = pusher

    async def create(self, data: Dict[str, Any]) -> Dict[str, Any]:
        key_column = self.schema.key_column
        key = stringify(data.get(key_column)).strip()
        if not key:
            raise RecordValidationError(f"{key_column} is required")

        if await run_in_threadpool(self.store.exists, key):
            raise RecordExistsError(f"{self.schema.name} #{key} already exists")

        row = {**data, key_column: key, 'created_at': datetime.now(timezone.utc).isoformat()}
        stored = await run_in_threadpool(self.store.set, row)
        logger.info(f"[{self.schema.name}] Created {key}")

        self.pusher.push('create', self.schema.record_from_row(stored))
        return stored

    async def update(self, key: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        key = key.strip()
        changes = {k: v for k, v in changes.items() if k != self.schema.key_column}
        changes['updated_at'] = datetime.now(timezone.utc).isoformat()

        merged = await run_in_threadpool(self.store.merge, key, changes)
        if merged is None:
            raise RecordNotFoundError(f"{self.schema.name} #{key} not found")

        # Push the full record, not just the changed columns
        full = await run_in_threadpool(self.store.get, key) or merged
        logger.info(f"[{self.schema.name}] Updated {key}")

        self.pusher.push('update', self.schema.record_from_row(full))
        return full

    async def delete(self, key: str) -> Dict[str, Any]:
        key = key.strip()
        existing = await run_in_threadpool(self.store.get, key)
        if existing is None:
            raise RecordNotFoundError(f"{self.schema.name} #{key} not found")

        await run_in_threadpool(self.store.delete, key)
        logger.info(f"[{self.schema.name}] Deleted {key}")

        self.pusher.push('delete', self.schema.record_from_row(existing))
        return existing
