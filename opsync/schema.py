"""
Per-collection schema: how source columns, canonical fields and storage
columns relate for one record collection.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from opsync.dates import normalize_date
from opsync.models import CANONICAL_FIELDS, LocalRecord, NormalizedRecord


def stringify(value: Any) -> str:
    """Render a loosely typed source or storage value as a string."""
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


@dataclass(frozen=True)
class CollectionSchema:
    """
    Attributes:
        name: Collection name used in URLs, guard keys and logs.
        table: Storage table holding LocalRecords.
        columns: Canonical field -> storage column. Must map natural_key.
        aliases: Canonical field -> ordered source key names.
        defaults: Canonical field -> value used when no alias resolves.
        compare_fields: Fields whose difference classifies a record Updated.
        outbound_names: Canonical field -> key used in outbound pushes.
            Falls back to the first alias of the field.
        audit_columns: Storage columns stamped with the write time on commit.
        local_only: Mapped fields the sheet does not own. They are read from
            stored rows for outbound pushes but never written by a commit.
    """
    name: str
    table: str
    columns: Dict[str, str]
    aliases: Dict[str, List[str]]
    defaults: Dict[str, str] = field(default_factory=dict)
    compare_fields: Tuple[str, ...] = ()
    outbound_names: Dict[str, str] = field(default_factory=dict)
    audit_columns: Tuple[str, ...] = ("updated_at",)
    local_only: Tuple[str, ...] = ()

    def __post_init__(self):
        if "natural_key" not in self.columns:
            raise ValueError(f"Schema '{self.name}' does not map natural_key to a column")
        unknown = (set(self.columns) | set(self.aliases) | set(self.compare_fields) | set(self.local_only)) - set(CANONICAL_FIELDS)
        if unknown:
            raise ValueError(f"Schema '{self.name}' references unknown fields: {sorted(unknown)}")

    @property
    def key_column(self) -> str:
        return self.columns["natural_key"]

    def default_for(self, name: str) -> str:
        return self.defaults.get(name, "")

    def to_row(self, record: NormalizedRecord) -> Dict[str, str]:
        """Storage row for a record; only mapped columns are present."""
        return {
            column: record.get(name)
            for name, column in self.columns.items()
            if name not in self.local_only
        }

    def from_row(self, row: Dict[str, Any]) -> LocalRecord:
        values = {}
        for name, column in self.columns.items():
            if column in row and row[column] is not None:
                values[name] = stringify(row[column])
        return LocalRecord(
            natural_key=stringify(row.get(self.key_column)).strip(),
            values=values,
            row=row,
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )

    def record_from_row(self, row: Dict[str, Any]) -> NormalizedRecord:
        """Canonical view of a stored row, filling unmapped fields with defaults."""
        local = self.from_row(row)
        values = {}
        for name in CANONICAL_FIELDS:
            if name == "natural_key":
                continue
            values[name] = local.values.get(name) or self.default_for(name)
        values["timestamp"] = normalize_date(local.values.get("timestamp"))
        return NormalizedRecord(natural_key=local.natural_key, **values)

    def outbound_name(self, name: str) -> Optional[str]:
        if name in self.outbound_names:
            return self.outbound_names[name]
        candidates = self.aliases.get(name)
        return candidates[0] if candidates else None

    def to_outbound(self, record: NormalizedRecord, action: str) -> Dict[str, str]:
        payload = {"action": action}
        for name in CANONICAL_FIELDS:
            key = self.outbound_name(name)
            if key:
                payload[key] = record.get(name)
        return payload
