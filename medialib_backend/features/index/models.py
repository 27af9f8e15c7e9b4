"""
Record shapes shared by the indexing engine.

Usage records travel as plain dicts (they are read from and written to the
persisted JSON sheet as-is); the TypedDicts below document their keys.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Literal, Optional, TypedDict


class MediaUsageRecord(TypedDict, total=False):
    url: str
    name: str
    doc: str
    alt: Optional[str]
    type: str
    ctx: str
    hash: str
    firstUsedAt: str
    lastUsedAt: str


class AggregatedMediaRecord(MediaUsageRecord, total=False):
    mediaUrl: str
    usageCount: int
    isUsed: bool


@dataclass(frozen=True)
class CrawlItem:
    """One filesystem entry reported by a crawler."""
    path: str
    ext: str = ""
    name: str = ""
    last_modified: int = 0  # epoch ms

    @property
    def is_document(self) -> bool:
        return self.path.endswith(".html")


@dataclass
class ScanCounters:
    pages_scanned: int = 0
    pages_processed: int = 0
    media_scanned: int = 0
    media_processed: int = 0
    media_discovered: int = 0
    errors: int = 0


@dataclass
class ScanSummary:
    duration_seconds: float
    has_changes: bool
    counters: ScanCounters = field(default_factory=ScanCounters)
    total_records: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "durationSeconds": round(float(self.duration_seconds), 3),
            "hasChanges": bool(self.has_changes),
            "totalRecords": int(self.total_records),
            **{_camel(k): v for k, v in asdict(self.counters).items()},
        }


FolderNodeType = Literal["folder", "file"]


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(p.capitalize() for p in rest)
