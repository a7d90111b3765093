"""
Typed records passed between the stages of a reconciliation run.

ExternalRecord stays an untyped dict and never leaves the normalizer;
everything downstream works on NormalizedRecord / LocalRecord.
"""

from dataclasses import dataclass, field, fields, asdict
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from opsync.dates import parse_instant

ExternalRecord = Dict[str, Any]


@dataclass(frozen=True)
class NormalizedRecord:
    """A source row mapped onto the canonical schema; every field is set."""
    natural_key: str
    status: str = ""
    type: str = ""
    severity: str = ""
    category: str = ""
    sub_category: str = ""
    subject: str = ""
    details: str = ""
    assignee: str = ""
    action: str = ""
    resolution: str = ""
    remark: str = ""
    project: str = ""
    responsibility: str = ""
    timestamp: str = ""

    def get(self, name: str) -> str:
        return getattr(self, name)

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)

    @property
    def sort_instant(self) -> Optional[datetime]:
        return parse_instant(self.timestamp)


CANONICAL_FIELDS = tuple(f.name for f in fields(NormalizedRecord))


@dataclass
class LocalRecord:
    """A stored record, with canonical field values as strings."""
    natural_key: str
    values: Dict[str, str] = field(default_factory=dict)
    row: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def get(self, name: str) -> str:
        # Absent fields compare as empty strings
        return self.values.get(name) or ""


class ClassificationKind(Enum):
    NEW = "new"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


@dataclass
class ClassificationResult:
    natural_key: str
    kind: ClassificationKind
    incoming: NormalizedRecord
    previous: Optional[LocalRecord] = None
    changed_fields: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'natural_key': self.natural_key,
            'kind': self.kind.value,
            'incoming': self.incoming.to_dict(),
        }
        if self.previous is not None:
            data['previous'] = self.previous.values
            data['changed_fields'] = self.changed_fields
        return data


@dataclass
class Classification:
    """Output of one analyze pass, held until commit, cancel or re-analyze."""
    new: List[ClassificationResult] = field(default_factory=list)
    updated: List[ClassificationResult] = field(default_factory=list)
    unchanged: List[ClassificationResult] = field(default_factory=list)
    fetched: int = 0
    skipped: int = 0
    duplicates: int = 0

    @property
    def pending(self) -> List[ClassificationResult]:
        return self.new + self.updated

    @property
    def has_changes(self) -> bool:
        return len(self.new) + len(self.updated) > 0

    def summary(self) -> Dict[str, int]:
        return {
            'fetched': self.fetched,
            'skipped': self.skipped,
            'duplicates': self.duplicates,
            'new': len(self.new),
            'updated': len(self.updated),
            'unchanged': len(self.unchanged),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            'summary': self.summary(),
            'new': [r.to_dict() for r in self.new],
            'updated': [r.to_dict() for r in self.updated],
            'unchanged': [r.to_dict() for r in self.unchanged],
        }


class SyncType(Enum):
    MANUAL = "manual"
    AUTO = "auto"

    @classmethod
    def parse(cls, value: Optional[str]) -> "SyncType":
        """Read a stored sync type; anything unrecognized counts as auto."""
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.AUTO


@dataclass
class SyncGuardState:
    last_sync_date: Optional[str] = None
    last_sync_type: Optional[str] = None
    last_run_at: Optional[str] = None
    updated_count: int = 0

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "SyncGuardState":
        data = data or {}
        return cls(
            last_sync_date=data.get('last_sync_date'),
            last_sync_type=data.get('last_sync_type'),
            last_run_at=data.get('last_run_at'),
            updated_count=int(data.get('updated_count') or 0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class CommitStats:
    created: int = 0
    updated: int = 0
    chunks: int = 0

    @property
    def total(self) -> int:
        return self.created + self.updated

    def to_dict(self) -> Dict[str, int]:
        return {
            'created': self.created,
            'updated': self.updated,
            'chunks': self.chunks,
            'total': self.total,
        }


@dataclass
class AutoSyncStatus:
    """Display state of the automatic path for one collection."""
    status: str = "idle"  # idle | checking | syncing | done | error
    last_sync_date: Optional[str] = None
    last_sync_type: Optional[str] = None
    sync_count: int = 0
    already_synced_today: bool = False
    error_message: Optional[str] = None

    def set_checking(self):
        self.status = "checking"
        self.error_message = None

    def set_syncing(self):
        self.status = "syncing"
        self.error_message = None

    def set_done(self, today: str, sync_count: int = 0, already_synced: bool = False, sync_type: SyncType = SyncType.AUTO):
        self.status = "done"
        self.sync_count = sync_count
        self.already_synced_today = already_synced
        self.last_sync_date = today
        self.last_sync_type = sync_type.value
        self.error_message = None

    def set_error(self, message: str):
        self.status = "error"
        self.error_message = message

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
