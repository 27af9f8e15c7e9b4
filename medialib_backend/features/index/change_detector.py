"""
Change detection for crawled documents and for the persisted index itself.
"""
from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Optional

from ...shared import get_logger, ms_from_iso

logger = get_logger(__name__)


def is_document_modified(previous_ms: Optional[int], current_ms: Optional[int]) -> bool:
    """
    Decide whether a document must be re-parsed.

    A document with no previous timestamp is always modified. A document whose
    current timestamp is unknown is treated as modified too.
    """
    if not previous_ms:
        return True
    if current_ms is None:
        return True
    return int(current_ms) > int(previous_ms)


def doc_timestamps_from_records(records: Iterable[Mapping[str, Any]]) -> dict[str, int]:
    """
    Derive per-document timestamps from usage records.

    Each document maps to the latest `lastUsedAt` among its records. Used when
    no last-modified snapshot has been persisted yet.
    """
    out: dict[str, int] = {}
    for record in records:
        doc = str(record.get("doc") or "")
        if not doc:
            continue
        stamp = ms_from_iso(record.get("lastUsedAt"))
        if not stamp:
            continue
        if stamp > out.get(doc, 0):
            out[doc] = stamp
    return out


@dataclass
class IndexWatch:
    """
    Per-session tracker for the persisted index file's modification time.

    One instance belongs to one site session; nothing is shared at module level.
    """
    last_seen_ms: Optional[int] = None

    def observe(self, file_timestamp_ms: Optional[int]) -> bool:
        """
        Record the latest observed timestamp and report whether a reload is due.

        A missing file or a first observation always reports a change.
        """
        if file_timestamp_ms is None:
            return True
        changed = self.last_seen_ms is None or int(file_timestamp_ms) > int(self.last_seen_ms)
        self.last_seen_ms = int(file_timestamp_ms)
        return changed

    def reset(self) -> None:
        self.last_seen_ms = None
