"""Backend-facing alias for shared utilities so feature modules import from one place."""
from __future__ import annotations

from medialib_shared import (
    DOCUMENT_SUFFIX,
    EXTENSIONS,
    MEDIA_EXTENSIONS,
    ErrorCode,
    MediaCategory,
    MediaKind,
    Result,
    classify_extension,
    extract_file_extension,
    get_logger,
    is_media_extension,
    iso_from_ms,
    log_structured,
    log_success,
    ms,
    ms_from_iso,
    now_iso,
    request_id_var,
    sanitize_error_message,
    timer,
)

__all__ = [
    "Result",
    "ErrorCode",
    "get_logger",
    "log_success",
    "log_structured",
    "request_id_var",
    "sanitize_error_message",
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
