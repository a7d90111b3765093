"""
Local store surface over Supabase tables.

RecordStore addresses rows by natural key. StateStore holds small JSON
documents in the sync_state table (key -> value), used by the sync guard.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional

from opsync.config import SYNC_BATCH_SIZE, SYNC_STATE_TABLE
from opsync.utils import chunked

logger = logging.getLogger("RecordStore")

PAGE_SIZE = 1000


def _default_client():
    from opsync.supabase_client import get_supabase
    return get_supabase()


class RecordStore:
    """
    Key-addressed access to one collection table.

    Usage:
        store = RecordStore("ticket_logs", key_column="ticket_number")
        rows = store.select_all()
        store.upsert_many(rows, chunk_size=500)
    """

    def __init__(self, table: str, key_column: str, client: Any = None, batch_size: int = SYNC_BATCH_SIZE):
        self.table_name = table
        self.key_column = key_column
        self.batch_size = batch_size
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = _default_client()
        return self._client

    def table(self):
        return self.client.table(self.table_name)

    def select_all(self) -> List[Dict[str, Any]]:
        """Fetch every row, one page at a time."""
        rows: List[Dict[str, Any]] = []
        start = 0
        while True:
            response = self.table().select("*").range(start, start + PAGE_SIZE - 1).execute()
            batch = response.data or []
            rows.extend(batch)
            if len(batch) < PAGE_SIZE:
                break
            start += PAGE_SIZE
        return rows

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        response = self.table().select("*").eq(self.key_column, key).limit(1).execute()
        return response.data[0] if response.data else None

    def exists(self, key: str) -> bool:
        response = self.table().select(self.key_column).eq(self.key_column, key).limit(1).execute()
        return bool(response.data)

    def set(self, row: Dict[str, Any]) -> Dict[str, Any]:
        response = self.table().insert(row).execute()
        return response.data[0] if response.data else row

    def merge(self, key: str, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Shallow-merge `changes` into the stored row; other columns are untouched."""
        response = self.table().update(changes).eq(self.key_column, key).execute()
        return response.data[0] if response.data else None

    def delete(self, key: str) -> bool:
        response = self.table().delete().eq(self.key_column, key).execute()
        return bool(response.data)

    def upsert_chunks(self, rows: List[Dict[str, Any]], chunk_size: Optional[int] = None) -> Iterator[int]:
        """
        Upsert rows keyed on the natural key, one request per chunk.

        Each request is applied atomically by the database; the sequence of
        chunks is not. Yields the size of each chunk once it is written, so a
        caller knows how far a failed run got.
        """
        for chunk in chunked(rows, chunk_size or self.batch_size):
            self.table().upsert(chunk, on_conflict=self.key_column).execute()
            yield len(chunk)


class StateStore:
    """JSON documents in the sync_state table, with read / merge-write."""

    def __init__(self, client: Any = None, table: str = SYNC_STATE_TABLE):
        self.table_name = table
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = _default_client()
        return self._client

    def read(self, key: str) -> Dict[str, Any]:
        result = self.client.table(self.table_name).select("value").eq("key", key).execute()
        if not result.data or not result.data[0].get("value"):
            return {}
        value = result.data[0]["value"]
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except ValueError:
                logger.warning(f"Ignoring non-JSON sync_state value for {key}")
                return {}
        return value if isinstance(value, dict) else {}

    def merge_write(self, key: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        merged = {**self.read(key), **fields}
        self.client.table(self.table_name).upsert({
            "key": key,
            "value": json.dumps(merged),
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }).execute()
        return merged
