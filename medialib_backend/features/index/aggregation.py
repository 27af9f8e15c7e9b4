"""
Derived views over the index: filter counts, suggestions, usage map, folders.

`process_media_data` builds suggestions, the usage map and the folder tree in
one pass over the records. Filter counts and folder counts take their own
passes.
"""
from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Optional

from ...config import SUGGESTION_LIMIT
from .filters import FILTERS, get_media_type, get_subtype, is_svg
from .folders import FolderHierarchy


@dataclass
class ProcessedMediaData:
    filter_counts: dict[str, int] = field(default_factory=dict)
    search_suggestions: list[dict[str, Any]] = field(default_factory=list)
    usage_map: dict[str, dict[str, Any]] = field(default_factory=dict)
    folder_hierarchy: FolderHierarchy = field(default_factory=FolderHierarchy)
    doc_paths: list[str] = field(default_factory=list)
    media_types: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "filterCounts": dict(self.filter_counts),
            "searchSuggestions": list(self.search_suggestions),
            "usageMap": {
                url: {"usageCount": info["usageCount"], "usageDetails": list(info["usageDetails"])}
                for url, info in self.usage_map.items()
            },
            "folderHierarchy": self.folder_hierarchy.to_dict(),
            "docPaths": list(self.doc_paths),
            "mediaTypes": list(self.media_types),
        }


def create_search_suggestion(record: Mapping[str, Any]) -> Optional[dict[str, Any]]:
    if not record.get("name") and not record.get("url") and not record.get("doc"):
        return None
    return {
        "type": "media",
        "value": dict(record),
        "display": record.get("name") or record.get("url") or "Unnamed Media",
        "details": {
            "name": record.get("name"),
            "alt": record.get("alt"),
            "doc": record.get("doc"),
            "url": record.get("url"),
            "type": get_media_type(record),
        },
    }


def _suggestion_sort_key(suggestion: dict[str, Any]) -> tuple[int, str]:
    used = bool((suggestion.get("value") or {}).get("isUsed") or (suggestion.get("details") or {}).get("doc"))
    return (0 if used else 1, str(suggestion.get("display") or "").lower())


def count_filters(records: Iterable[Mapping[str, Any]]) -> dict[str, int]:
    """Number of records each named filter admits."""
    counts = {name.value: 0 for name in FILTERS}
    for record in records:
        for name, predicate in FILTERS.items():
            if predicate(record):
                counts[name.value] += 1
    return counts


def process_media_data(records: Optional[Iterable[Mapping[str, Any]]], suggestion_limit: int = SUGGESTION_LIMIT) -> ProcessedMediaData:
    """
    Compute every presentation view over `records`.

    Args:
        records: Usage records (raw or aggregated)
        suggestion_limit: How many search suggestions to keep after sorting
    """
    processed = ProcessedMediaData()
    if records is None:
        return processed
    records = [r for r in records if isinstance(r, Mapping)]

    suggestions: list[dict[str, Any]] = []
    doc_paths: set[str] = set()
    media_types: dict[str, None] = {}

    for record in records:
        suggestion = create_search_suggestion(record)
        if suggestion is not None:
            suggestions.append(suggestion)

        url = str(record.get("url") or "")
        if url:
            usage = processed.usage_map.setdefault(url, {"media": dict(record), "usageCount": 0, "usageDetails": []})
            if str(record.get("doc") or "").strip():
                usage["usageDetails"].append(dict(record))
                usage["usageCount"] = len(usage["usageDetails"])

        doc = str(record.get("doc") or "")
        if doc:
            doc_paths.add(doc)
            processed.folder_hierarchy.add_document(doc)

        media_type = get_media_type(record)
        if media_type:
            media_types.setdefault(media_type, None)

    processed.folder_hierarchy.count_records(records)
    suggestions.sort(key=_suggestion_sort_key)
    processed.filter_counts = count_filters(records)
    processed.search_suggestions = suggestions[: max(0, int(suggestion_limit))]
    processed.doc_paths = sorted(doc_paths)
    processed.media_types = list(media_types)
    return processed


def aggregate_media_data(records: Optional[Iterable[Mapping[str, Any]]]) -> list[dict[str, Any]]:
    """
    Group records by URL.

    The first record of each URL is the representative; `usageCount` counts
    the distinct documents referencing it.
    """
    if not records:
        return []
    grouped: dict[str, dict[str, Any]] = {}
    docs_by_url: dict[str, set[str]] = {}
    for record in records:
        url = str(record.get("url") or "")
        if url not in grouped:
            grouped[url] = {**record, "mediaUrl": url, "usageCount": 0, "isUsed": False}
            docs_by_url[url] = set()
        doc = str(record.get("doc") or "").strip()
        if doc and doc not in docs_by_url[url]:
            docs_by_url[url].add(doc)
            grouped[url]["usageCount"] += 1
            grouped[url]["isUsed"] = True
    return list(grouped.values())


def get_media_counts(records: Optional[Iterable[Mapping[str, Any]]]) -> dict[str, int]:
    """Unique-URL counts per category, usage state and missing alt text."""
    if records is None:
        return {}
    buckets: dict[str, set[str]] = {
        key: set() for key in ("total", "images", "videos", "documents", "links", "icons", "used", "unused", "missingAlt")
    }
    category_bucket = {"image": "images", "video": "videos", "document": "documents", "link": "links"}
    for record in records:
        url = str(record.get("url") or "")
        buckets["total"].add(url)
        svg = is_svg(record)
        if svg:
            buckets["icons"].add(url)
        else:
            bucket = category_bucket.get(get_media_type(record))
            if bucket:
                buckets[bucket].add(url)
        if str(record.get("doc") or "").strip():
            buckets["used"].add(url)
        else:
            buckets["unused"].add(url)
        if not record.get("alt") and str(record.get("type") or "").startswith("img >") and not svg:
            buckets["missingAlt"].add(url)
    return {key: len(urls) for key, urls in buckets.items()}


def get_document_media_breakdown(records: Optional[Iterable[Mapping[str, Any]]], doc: str) -> Optional[dict[str, int]]:
    if records is None or not doc:
        return None
    document_records = [r for r in records if r.get("doc") == doc]
    breakdown = get_media_counts(document_records)
    breakdown["total"] = len(document_records)
    return breakdown


def get_available_subtypes(records: Optional[Iterable[Mapping[str, Any]]], active_filter: str = "links") -> list[dict[str, Any]]:
    """Subtypes (`PDF`, `MP4`, ...) of link records with their unique-URL counts."""
    if records is None or active_filter != "links":
        return []
    subtypes: dict[str, set[str]] = {}
    for record in records:
        type_tag = str(record.get("type") or "")
        if " > " not in type_tag or type_tag.split(" > ", 1)[0] != "link":
            continue
        subtype = get_subtype(record)
        if subtype:
            subtypes.setdefault(subtype, set()).add(str(record.get("url") or ""))
    return [{"subtype": name, "count": len(urls)} for name, urls in sorted(subtypes.items())]
