"""
Query parsing, search, suggestions and the browse order.
"""
from __future__ import annotations

import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Optional

from ...config import QUERY_SUGGESTION_LIMIT
from ...shared import ms_from_iso
from .filters import apply_filter, get_subtype

SEARCH_FIELDS = ("doc", "name", "alt", "url")
_COLON_RE = re.compile(r"^(\w+):(.*)$", re.DOTALL)


@dataclass(frozen=True)
class ColonQuery:
    field: str
    value: str
    original: str


def parse_colon_syntax(query: Optional[str]) -> Optional[ColonQuery]:
    """`doc:/blog` -> ColonQuery("doc", "/blog"); None without a leading `token:`."""
    if not query:
        return None
    match = _COLON_RE.match(query)
    if not match:
        return None
    field, value = match.groups()
    return ColonQuery(field=field.lower(), value=value.strip().lower(), original=query)


def _contains(record: Mapping[str, Any], field: str, needle: str) -> bool:
    value = record.get(field)
    return bool(value) and needle in str(value).lower()


def filter_by_search(records: list, query: Optional[str]) -> list:
    """
    Field-scoped search for `field:value`, otherwise substring match over
    name, alt, doc and url. Tokens other than doc, name, alt and url
    (`https://...`) are searched as plain text.
    """
    if not query or not query.strip():
        return records
    needle = query.lower().strip()
    colon = parse_colon_syntax(needle)
    if colon is not None and colon.field in SEARCH_FIELDS:
        return [r for r in records if _contains(r, colon.field, colon.value)]
    return [r for r in records if any(_contains(r, f, needle) for f in ("name", "alt", "doc", "url"))]


def _doc_suggestions(docs: Iterable[str]) -> list[dict[str, Any]]:
    return [{"type": "doc", "value": doc, "display": doc} for doc in docs]


def get_search_suggestions(
    suggestions: Sequence[Mapping[str, Any]],
    query: Optional[str],
    limit: int = QUERY_SUGGESTION_LIMIT,
) -> list[dict[str, Any]]:
    """
    Narrow precomputed media suggestions for a query.

    `doc:` queries yield unique document paths; other `field:` queries yield
    the media suggestions whose field matches. Plain queries yield matching
    documents followed by matching media, capped at `limit`.
    """
    if not query or not query.strip():
        return []
    colon = parse_colon_syntax(query)
    if colon is not None and colon.field in SEARCH_FIELDS:
        if colon.field == "doc":
            docs: dict[str, None] = {}
            for suggestion in suggestions:
                doc = (suggestion.get("details") or {}).get("doc")
                if doc and colon.value in str(doc).lower():
                    docs.setdefault(str(doc), None)
            return _doc_suggestions(docs)
        return [
            dict(s) for s in suggestions
            if _contains(s.get("details") or {}, colon.field, colon.value)
        ]

    needle = query.lower()
    docs = {}
    media: list[dict[str, Any]] = []
    for suggestion in suggestions:
        details = suggestion.get("details") or {}
        doc = details.get("doc")
        if doc and needle in str(doc).lower():
            docs.setdefault(str(doc), None)
        if (
            needle in str(suggestion.get("display") or "").lower()
            or _contains(details, "alt", needle)
            or _contains(details, "url", needle)
        ):
            media.append(dict(suggestion))
    return (_doc_suggestions(docs) + media)[: max(0, int(limit))]


def browse_sort_key(record: Mapping[str, Any]) -> tuple[int, str]:
    return (-(ms_from_iso(record.get("lastUsedAt")) or 0), str(record.get("name") or "").lower())


def sort_for_browse(records: Iterable[Mapping[str, Any]]) -> list:
    """Most recently used first; ties by name, case-insensitive."""
    return sorted(records, key=browse_sort_key)


def filter_by_subtypes(records: list, subtypes: Optional[Iterable[str]]) -> list:
    """Keep `img >`/`link >` records whose subtype is selected."""
    wanted = {str(s).strip().upper() for s in subtypes or () if str(s).strip()}
    if not wanted:
        return records
    return [
        r for r in records
        if str(r.get("type") or "").startswith(("img >", "link >")) and get_subtype(r) in wanted
    ]


def filter_by_folders(records: list, paths: Optional[Iterable[str]]) -> list:
    """Keep records whose `doc` equals one of the selected document paths."""
    selected = {"/" + str(p).lstrip("/") for p in paths or () if str(p).strip()}
    if not selected:
        return records
    return [r for r in records if str(r.get("doc") or "") in selected]


def filter_media_data(
    records: list,
    *,
    filter_name: Optional[str] = None,
    query: Optional[str] = None,
    subtypes: Optional[Iterable[str]] = None,
    folders: Optional[Iterable[str]] = None,
) -> list:
    """Compose filter, subtype, folder and search, then apply the browse order."""
    out = apply_filter(records, filter_name or "all")
    out = filter_by_subtypes(out, subtypes)
    out = filter_by_folders(out, folders)
    out = filter_by_search(out, query)
    return sort_for_browse(out)
