"""
Shared helpers for sanitizing error messages before they reach clients.
"""
from __future__ import annotations

import os
import re
from typing import Any

from .log import get_logger

logger = get_logger(__name__)
_DEBUG_MODE = os.getenv("MEDIALIB_DEBUG", "").strip().lower() in ("1", "true", "yes", "on")
_WINDOWS_PATH_RE = re.compile(r"[A-Za-z]:\\[^\s]+")
_TOKEN_RE = re.compile(r"(?i)(bearer|token|authorization)[=:\s]+(?:bearer\s+)?[^\s,;]+")
_MAX_MESSAGE_LENGTH = 200


def _mask_secrets(value: str) -> str:
    """Mask local filesystem paths and credentials that may appear in upstream errors."""
    cleaned = _WINDOWS_PATH_RE.sub("[path]", value)
    return _TOKEN_RE.sub(r"\1 [redacted]", cleaned)


def sanitize_error_message(exc: Any, fallback: str) -> str:
    """
    Build a safe error message for clients.

    Site paths (`/org/repo/...`) are kept since they are what a user needs
    to act on; local paths and auth tokens are masked.

    Args:
        exc: Exception or raw value to sanitize.
        fallback: Message used as prefix, or alone when nothing meaningful remains.
    """
    if not fallback:
        fallback = "An error occurred"
    if exc is None:
        return fallback

    try:
        raw = str(exc)
    except Exception:
        raw = ""
    if not raw:
        return fallback

    sanitized = _mask_secrets(raw.replace(os.getcwd(), "[cwd]"))
    sanitized = " ".join(sanitized.splitlines()).strip()

    if _DEBUG_MODE:
        logger.debug("Sanitized error payload: %s", sanitized, exc_info=True)

    if sanitized:
        return f"{fallback}: {sanitized[:_MAX_MESSAGE_LENGTH]}"
    return fallback
