"""
Deduplication and classification of a normalized batch against local state.

Both steps are pure CPU work; nothing here touches the network or the store.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List

from opsync.models import (
    Classification,
    ClassificationKind,
    ClassificationResult,
    LocalRecord,
    NormalizedRecord,
)
from opsync.schema import CollectionSchema

logger = logging.getLogger("Reconcile")

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def deduplicate(records: Iterable[NormalizedRecord]) -> Dict[str, NormalizedRecord]:
    """
    Collapse records sharing a natural key.

    The later record replaces the earlier one as a whole; no fields are
    carried over from the record it replaces.
    """
    unique: Dict[str, NormalizedRecord] = {}
    for record in records:
        unique[record.natural_key.strip()] = record
    return unique


def changed_fields(incoming: NormalizedRecord, previous: LocalRecord, schema: CollectionSchema) -> List[str]:
    return [name for name in schema.compare_fields if previous.get(name) != incoming.get(name)]


def _sort_latest_first(results: List[ClassificationResult]) -> List[ClassificationResult]:
    # sorted() is stable with reverse=True, so equal timestamps keep input order
    return sorted(results, key=lambda r: r.incoming.sort_instant or _EPOCH, reverse=True)


def classify(
    incoming: Dict[str, NormalizedRecord],
    local_records: Iterable[LocalRecord],
    schema: CollectionSchema,
) -> Classification:
    """Split deduplicated incoming records into New / Updated / Unchanged."""
    local_by_key: Dict[str, LocalRecord] = {}
    for local in local_records:
        local_by_key.setdefault(local.natural_key.strip(), local)

    result = Classification()
    for key, record in incoming.items():
        previous = local_by_key.get(key)
        if previous is None:
            result.new.append(ClassificationResult(key, ClassificationKind.NEW, record))
            continue

        diff = changed_fields(record, previous, schema)
        if diff:
            result.updated.append(
                ClassificationResult(key, ClassificationKind.UPDATED, record, previous, diff)
            )
        else:
            result.unchanged.append(
                ClassificationResult(key, ClassificationKind.UNCHANGED, record, previous)
            )

    result.new = _sort_latest_first(result.new)
    result.updated = _sort_latest_first(result.updated)
    result.unchanged = _sort_latest_first(result.unchanged)

    logger.info(
        f"[{schema.name}] Classified {len(incoming)} records: "
        f"{len(result.new)} new, {len(result.updated)} updated, {len(result.unchanged)} unchanged"
    )
    return result
