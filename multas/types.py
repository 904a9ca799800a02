"""
Shared types for MULTAs.

Record and queue dataclasses live here. They are the shared vocabulary
between the storage layer, the sync queue and the classification pipeline.
"""

import time
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

# === Constants ===

# Category 0 is "unclassified"; 1-12 are the clock-face taxonomy.
MIN_CATEGORY = 0
MAX_CATEGORY = 12

DEFAULT_USER_NAME = "ゲストユーザー"

# Fields a partial update may touch. id and timestamp are fixed at creation.
UPDATABLE_FIELDS = frozenset({"user_name", "text", "category", "reason", "date"})
IMMUTABLE_FIELDS = frozenset({"id", "timestamp"})


class StorageMode(str, Enum):
    """Storage strategy chosen at startup."""

    HYBRID = "hybrid"  # Local workbook primary, remote mirror in background
    REMOTE = "remote"  # Remote spreadsheet is the only store


class SyncOperation(str, Enum):
    """Mutation kinds carried by the sync queue."""

    ADD = "add"
    UPDATE = "update"
    DELETE = "delete"


# === Records ===


@dataclass
class Record:
    """One logged clinical experience."""

    id: str
    timestamp: str
    user_name: str
    text: str
    category: int = 0
    reason: str = ""
    date: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class SyncTask:
    """A queued mutation destined for the remote mirror."""

    operation: SyncOperation
    payload: Dict[str, Any]
    retries: int = 0
    enqueued_at: float = field(default_factory=time.time)

    @property
    def record_id(self) -> Optional[str]:
        value = self.payload.get("id")
        return str(value) if value is not None else None


# === Results ===


@dataclass
class AddResult:
    """Outcome of Storage.add_record."""

    success: bool
    synced: bool
    row_number: int = -1
    record: Optional[Record] = None
    # True when no remote mirror is configured and the write stays local
    local: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "success": self.success,
            "synced": self.synced,
            "row_number": self.row_number,
            "local": self.local,
        }
        if self.record is not None:
            data["record"] = self.record.to_dict()
        return data


@dataclass
class SyncResult:
    """Result of one sync queue drain."""

    pushed: int = 0  # Tasks applied to the remote mirror
    requeued: int = 0  # Tasks put back for another attempt
    dropped: int = 0  # Tasks abandoned after max retries
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return len(self.errors) == 0


@dataclass
class ClassificationResult:
    """Classifier output for one unit of text."""

    category: int
    reason: str
    confidence: float = 0.0
    provider: str = "llm"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ElementResult:
    """One decomposed element of a long submission."""

    text: str
    category: int
    reason: str
    confidence: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class AnalysisResult:
    """Pipeline output for a whole submission.

    Short texts produce a single element and ``is_multiple=False``.
    """

    is_multiple: bool
    elements: List[ElementResult]
    original_text: str

    @property
    def category(self) -> int:
        return self.elements[0].category

    @property
    def reason(self) -> str:
        return self.elements[0].reason

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "is_multiple": self.is_multiple,
            "original_text": self.original_text,
            "elements": [e.to_dict() for e in self.elements],
        }
        if not self.is_multiple:
            data["category"] = self.category
            data["reason"] = self.reason
        return data
