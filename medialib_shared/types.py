"""
Shared types, enums, and media extension tables.
"""
from enum import Enum
from typing import Final, Literal

# Base element/kind prefix used in compound type tags ("img > png").
MediaKind = Literal["img", "video", "document", "audio", "unknown"]

# Coarse category used by filters and counts.
MediaCategory = Literal["image", "video", "document", "link", "audio", "unknown"]


class ErrorCode(str, Enum):
    """Standardized error codes (string enum)."""
    OK = "OK"

    # Client / validation
    INVALID_INPUT = "INVALID_INPUT"
    INVALID_JSON = "INVALID_JSON"
    NOT_FOUND = "NOT_FOUND"

    # Scan lifecycle
    SCAN_IN_PROGRESS = "SCAN_IN_PROGRESS"
    SCAN_FAILED = "SCAN_FAILED"
    LOCK_ERROR = "LOCK_ERROR"

    # Storage / fetch
    STORAGE_ERROR = "STORAGE_ERROR"
    FETCH_FAILED = "FETCH_FAILED"
    PARSE_ERROR = "PARSE_ERROR"

    # Service availability
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    INTERNAL_ERROR = "INTERNAL_ERROR"


IMAGE_EXTENSIONS: Final[frozenset[str]] = frozenset({"jpg", "jpeg", "png", "gif", "webp", "svg", "avif"})
VIDEO_EXTENSIONS: Final[frozenset[str]] = frozenset({"mp4", "webm", "mov", "avi"})
DOCUMENT_EXTENSIONS: Final[frozenset[str]] = frozenset({"pdf"})
AUDIO_EXTENSIONS: Final[frozenset[str]] = frozenset({"mp3", "wav"})

EXTENSIONS: Final[dict[MediaKind, frozenset[str]]] = {
    "img": IMAGE_EXTENSIONS,
    "video": VIDEO_EXTENSIONS,
    "document": DOCUMENT_EXTENSIONS,
    "audio": AUDIO_EXTENSIONS,
}

MEDIA_EXTENSIONS: Final[frozenset[str]] = IMAGE_EXTENSIONS | VIDEO_EXTENSIONS | DOCUMENT_EXTENSIONS | AUDIO_EXTENSIONS

DOCUMENT_SUFFIX: Final[str] = ".html"


def extract_file_extension(value: str | None) -> str:
    """
    Return the lowercased text after the last dot of `value`.

    Query strings and fragments are ignored so `a.png?w=200` yields `png`.
    Returns an empty string when there is no dot.
    """
    if not value:
        return ""
    text = str(value).split("#", 1)[0].split("?", 1)[0]
    if "." not in text:
        return ""
    return text.rsplit(".", 1)[-1].lower()


def is_media_extension(ext: str | None) -> bool:
    """True when `ext` (with or without a leading dot) is a known media extension."""
    if not ext:
        return False
    clean = str(ext).strip().lower()
    if clean.startswith("."):
        clean = clean[1:]
    return clean in MEDIA_EXTENSIONS


def classify_extension(ext: str | None) -> MediaKind:
    """
    Classify an extension into the base kind used in type tags.

    Args:
        ext: Extension without the dot (e.g. "png")

    Returns:
        One of img, video, document, audio, unknown
    """
    clean = str(ext or "").strip().lower().lstrip(".")
    for kind, exts in EXTENSIONS.items():
        if clean in exts:
            return kind
    return "unknown"
