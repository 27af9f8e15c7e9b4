"""Shared utilities for the media library index."""
from .errors import sanitize_error_message
from .log import get_logger, log_structured, log_success, request_id_var
from .result import Result
from .time import iso_from_ms, ms, ms_from_iso, now, now_iso, timer
from .types import (
    DOCUMENT_SUFFIX,
    EXTENSIONS,
    MEDIA_EXTENSIONS,
    ErrorCode,
    MediaCategory,
    MediaKind,
    classify_extension,
    extract_file_extension,
    is_media_extension,
)

__all__ = [
    "Result",
    "ErrorCode",
    "get_logger",
    "log_success",
    "log_structured",
    "request_id_var",
    "sanitize_error_message",
    "now",
    "ms",
    "now_iso",
    "iso_from_ms",
    "ms_from_iso",
    "timer",
    "MediaKind",
    "MediaCategory",
    "EXTENSIONS",
    "MEDIA_EXTENSIONS",
    "DOCUMENT_SUFFIX",
    "classify_extension",
    "extract_file_extension",
    "is_media_extension",
]
