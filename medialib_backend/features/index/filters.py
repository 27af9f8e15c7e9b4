"""
Named record predicates.

`FILTERS` is a static table keyed by `FilterName`; anything that is not a
known name resolves to the identity filter.
"""
from __future__ import annotations

from collections.abc import Iterable, Mapping
from enum import Enum
from typing import Any, Callable, Optional

from ...shared import classify_extension, extract_file_extension

Predicate = Callable[[Mapping[str, Any]], bool]

# Base kinds used in type tags mapped to the category they filter under.
_TYPE_PREFIXES: tuple[tuple[str, str], ...] = (
    ("img >", "image"),
    ("video >", "video"),
    ("document >", "document"),
    ("link >", "link"),
)
_KIND_TO_CATEGORY = {"img": "image", "video": "video", "document": "document", "audio": "audio"}
_SVG_TYPES = frozenset({"img > svg", "link > svg"})

_DISPLAY_LABELS = {
    "img": "IMAGE",
    "video": "VIDEO",
    "video-source": "VIDEO SOURCE",
    "link": "LINK",
    "document": "DOCUMENT",
    "audio": "AUDIO",
}


class FilterName(str, Enum):
    IMAGES = "images"
    VIDEOS = "videos"
    DOCUMENTS = "documents"
    LINKS = "links"
    ICONS = "icons"
    USED = "used"
    UNUSED = "unused"
    MISSING_ALT = "missingAlt"
    DOCUMENT_IMAGES = "documentImages"
    DOCUMENT_ICONS = "documentIcons"
    DOCUMENT_VIDEOS = "documentVideos"
    DOCUMENT_DOCUMENTS = "documentDocuments"
    DOCUMENT_LINKS = "documentLinks"
    DOCUMENT_MISSING_ALT = "documentMissingAlt"
    DOCUMENT_TOTAL = "documentTotal"
    ALL = "all"

    @classmethod
    def parse(cls, value: Any) -> Optional["FilterName"]:
        try:
            return cls(str(value))
        except ValueError:
            return None


def get_media_type(record: Mapping[str, Any]) -> str:
    """
    Category of a record: image, video, document, link, audio or unknown.

    The type tag wins; otherwise the URL extension decides.
    """
    type_tag = str(record.get("type") or "")
    for prefix, category in _TYPE_PREFIXES:
        if type_tag.startswith(prefix):
            return category
    url = str(record.get("url") or record.get("mediaUrl") or "")
    return _KIND_TO_CATEGORY.get(classify_extension(extract_file_extension(url)), "unknown")


def is_svg(record: Mapping[str, Any]) -> bool:
    return str(record.get("type") or "") in _SVG_TYPES


def get_subtype(record: Mapping[str, Any]) -> str:
    """`link > pdf` -> `PDF`; tags without a subtype yield ''."""
    type_tag = str(record.get("type") or "")
    if " > " not in type_tag:
        return ""
    return type_tag.split(" > ", 1)[1].strip().upper()


def get_display_media_type(record: Mapping[str, Any]) -> str:
    type_tag = str(record.get("type") or "")
    if " > " in type_tag:
        base, subtype = type_tag.split(" > ", 1)
        return f"{_DISPLAY_LABELS.get(base, base.upper())} ({subtype.upper()})"
    if type_tag:
        return type_tag.upper()
    return get_media_type(record).upper()


def _is_image(record: Mapping[str, Any]) -> bool:
    return get_media_type(record) == "image" and not is_svg(record)


def _lacks_alt(record: Mapping[str, Any]) -> bool:
    return (
        get_media_type(record) == "image"
        and not record.get("alt")
        and str(record.get("type") or "").startswith("img >")
    )


def _category(name: str) -> Predicate:
    return lambda record: get_media_type(record) == name


FILTERS: dict[FilterName, Predicate] = {
    FilterName.IMAGES: _is_image,
    FilterName.VIDEOS: _category("video"),
    FilterName.DOCUMENTS: _category("document"),
    FilterName.LINKS: _category("link"),
    FilterName.ICONS: is_svg,
    FilterName.USED: lambda record: bool(record.get("isUsed")),
    FilterName.UNUSED: lambda record: not record.get("isUsed"),
    FilterName.MISSING_ALT: lambda record: _lacks_alt(record) and not is_svg(record),
    FilterName.DOCUMENT_IMAGES: _is_image,
    FilterName.DOCUMENT_ICONS: is_svg,
    FilterName.DOCUMENT_VIDEOS: _category("video"),
    FilterName.DOCUMENT_DOCUMENTS: _category("document"),
    FilterName.DOCUMENT_LINKS: _category("link"),
    FilterName.DOCUMENT_MISSING_ALT: _lacks_alt,
    FilterName.DOCUMENT_TOTAL: lambda record: True,
    FilterName.ALL: lambda record: not is_svg(record),
}


def _identity(record: Mapping[str, Any]) -> bool:
    return True


def resolve_filter(name: Any) -> Predicate:
    parsed = FilterName.parse(name)
    return FILTERS[parsed] if parsed is not None else _identity


def apply_filter(records: Iterable[Mapping[str, Any]], name: Any) -> list:
    """Subset of `records` matching the named filter; unknown names keep everything."""
    if FilterName.parse(name) is None:
        return records if isinstance(records, list) else list(records)
    predicate = resolve_filter(name)
    out = []
    for record in records:
        try:
            matched = predicate(record)
        except (AttributeError, TypeError):
            matched = False
        if matched:
            out.append(record)
    return out


def available_filters() -> list[str]:
    return [name.value for name in FilterName]
