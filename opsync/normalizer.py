import logging
from typing import Iterable, List, Optional, Tuple

from opsync.dates import normalize_date
from opsync.models import CANONICAL_FIELDS, ExternalRecord, NormalizedRecord
from opsync.schema import CollectionSchema, stringify

logger = logging.getLogger("RecordNormalizer")


def resolve_field(raw: ExternalRecord, candidates: Iterable[str]) -> Optional[str]:
    """Return the first alias present in `raw` with a non-empty value."""
    for key in candidates:
        value = stringify(raw.get(key))
        if value != "":
            return value
    return None


def normalize_record(raw: ExternalRecord, schema: CollectionSchema) -> Optional[NormalizedRecord]:
    """
    Map one external row onto the canonical schema.

    Returns None when the natural key resolves to an empty string.
    """
    key = (resolve_field(raw, schema.aliases.get("natural_key", [])) or "").strip()
    if not key:
        return None

    values = {}
    for name in CANONICAL_FIELDS:
        if name in ("natural_key", "timestamp"):
            continue
        resolved = resolve_field(raw, schema.aliases.get(name, []))
        values[name] = resolved if resolved is not None else schema.default_for(name)

    raw_date = resolve_field(raw, schema.aliases.get("timestamp", []))
    values["timestamp"] = normalize_date(raw_date)

    return NormalizedRecord(natural_key=key, **values)


def normalize_records(rows: List[ExternalRecord], schema: CollectionSchema) -> Tuple[List[NormalizedRecord], int]:
    """Normalize a fetched batch, preserving order. Returns (records, skipped)."""
    records = []
    skipped = 0
    for raw in rows:
        if not isinstance(raw, dict):
            skipped += 1
            continue
        record = normalize_record(raw, schema)
        if record is None:
            skipped += 1
            continue
        records.append(record)

    if skipped:
        logger.info(f"[{schema.name}] Skipped {skipped} rows without a natural key")
    return records, skipped
