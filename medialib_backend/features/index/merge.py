"""
Reconcile the previous index with the results of one scan.

Precedence, lowest first:
  1. previous records of documents that were crawled but not re-parsed, and
     previous unattached records (empty `doc`)
  2. fresh extractions of re-parsed documents; they replace every previous
     record of that document and any unattached record with the same URL
  3. unattached records for bare media files, only for URLs nothing else claims

Previous records of documents the crawl no longer reports are dropped. A
re-parsed document without a modification time counts as a change only when
its usages differ from the previous ones.
"""
from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from .hasher import same_usage
from .models import MediaUsageRecord


@dataclass
class MergeOutcome:
    records: list[MediaUsageRecord] = field(default_factory=list)
    reparsed_docs: int = 0
    new_media: int = 0
    dropped_docs: int = 0

    @property
    def has_changes(self) -> bool:
        return self.reparsed_docs + self.new_media > 0


def _key(record: Mapping) -> tuple[str, str]:
    return str(record.get("url") or ""), str(record.get("doc") or "")


def _usage_set(records: Iterable[Mapping]) -> set[tuple[str, str]]:
    return {(str(r.get("url") or ""), str(r.get("hash") or "")) for r in records}


def refresh_usage(fresh: MediaUsageRecord, existing: Mapping | None) -> MediaUsageRecord:
    """
    Combine a fresh extraction with the record it replaces.

    An unchanged usage (same hash) keeps the stored record. `firstUsedAt` is
    inherited from the existing record and never moves later; `lastUsedAt`
    comes from the fresh extraction.
    """
    if not existing:
        return dict(fresh)  # type: ignore[return-value]
    if same_usage(existing, fresh):
        merged: MediaUsageRecord = dict(existing)  # type: ignore[assignment]
        merged["lastUsedAt"] = fresh.get("lastUsedAt") or merged.get("lastUsedAt", "")
    else:
        merged = dict(fresh)  # type: ignore[assignment]
    first = existing.get("firstUsedAt")
    if first and (not merged.get("firstUsedAt") or str(first) < str(merged["firstUsedAt"])):
        merged["firstUsedAt"] = str(first)
    if merged.get("firstUsedAt") and merged.get("lastUsedAt") and merged["lastUsedAt"] < merged["firstUsedAt"]:
        merged["lastUsedAt"] = merged["firstUsedAt"]
    return merged


def merge_index(
    previous: Iterable[MediaUsageRecord],
    parsed: Mapping[str, list[MediaUsageRecord]],
    crawled_docs: set[str],
    unattached: Iterable[MediaUsageRecord] = (),
    unstamped_docs: Iterable[str] = (),
) -> MergeOutcome:
    """
    Args:
        previous: Records of the persisted index
        parsed: Fresh extractions per re-parsed document, in crawl order
        crawled_docs: Every document the crawl reported (site-relative)
        unattached: Records for bare media files, in crawl order
        unstamped_docs: Re-parsed documents without a modification time; they
            count as changed only when their usages differ from the previous ones
    """
    previous = list(previous)
    unstamped = set(unstamped_docs)
    existing_by_key: dict[tuple[str, str], Mapping] = {}
    for record in previous:
        existing_by_key.setdefault(_key(record), record)
    previous_urls = {str(r.get("url") or "") for r in previous}

    fresh: list[MediaUsageRecord] = []
    fresh_keys: set[tuple[str, str]] = set()
    for records in parsed.values():
        for usage in records:
            key = _key(usage)
            if not key[0] or key in fresh_keys:
                continue
            fresh_keys.add(key)
            fresh.append(refresh_usage(usage, existing_by_key.get(key)))
    fresh_urls = {key[0] for key in fresh_keys}

    carried: list[MediaUsageRecord] = []
    dropped: set[str] = set()
    for record in previous:
        doc = str(record.get("doc") or "")
        if not doc:
            if str(record.get("url") or "") in fresh_urls:
                continue
        elif doc in parsed:
            continue
        elif doc not in crawled_docs:
            dropped.add(doc)
            continue
        carried.append(record)

    merged = carried + fresh
    claimed = {str(r.get("url") or "") for r in merged}
    new_media = 0
    for record in unattached:
        url = str(record.get("url") or "")
        if not url or url in claimed:
            continue
        claimed.add(url)
        merged.append(record)
        if url not in previous_urls:
            new_media += 1

    changed_docs = sum(
        1 for doc, records in parsed.items()
        if doc not in unstamped or _usage_set(records) != _usage_set(r for r in previous if r.get("doc") == doc)
    )
    return MergeOutcome(records=merged, reparsed_docs=changed_docs, new_media=new_media, dropped_docs=len(dropped))
