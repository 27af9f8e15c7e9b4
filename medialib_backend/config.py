"""
Configuration for the media library index.

Every value can be overridden through `MEDIALIB_*` environment variables.
Numeric values are clamped to sane ranges; invalid input falls back to the
default with a warning.
"""
import logging
import os
from pathlib import Path

from .utils import env_bool

logger = logging.getLogger(__name__)


def _env_raw(*names: str, default: str | None = None) -> str | None:
    for name in names:
        if not name:
            continue
        val = os.getenv(name)
        if val is not None and str(val).strip() != "":
            return str(val).strip()
    return default


def _env_int(default: int, *names: str, min_value: int | None = None, max_value: int | None = None) -> int:
    raw = _env_raw(*names)
    if raw is None:
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        logger.warning("Invalid integer for %s=%r, using default=%s", names[0] if names else "<unknown>", raw, default)
        return default
    if min_value is not None and value < min_value:
        logger.warning("Value too small for %s=%s, clamped to %s", names[0] if names else "<unknown>", value, min_value)
        value = min_value
    if max_value is not None and value > max_value:
        logger.warning("Value too large for %s=%s, clamped to %s", names[0] if names else "<unknown>", value, max_value)
        value = max_value
    return value


def _env_float(default: float, *names: str, min_value: float | None = None, max_value: float | None = None) -> float:
    raw = _env_raw(*names)
    if raw is None:
        return default
    try:
        value = float(raw)
    except (TypeError, ValueError):
        logger.warning("Invalid float for %s=%r, using default=%s", names[0] if names else "<unknown>", raw, default)
        return default
    if min_value is not None and value < min_value:
        logger.warning("Value too small for %s=%s, clamped to %s", names[0] if names else "<unknown>", value, min_value)
        value = min_value
    if max_value is not None and value > max_value:
        logger.warning("Value too large for %s=%s, clamped to %s", names[0] if names else "<unknown>", value, max_value)
        value = max_value
    return value


def _env_bool(default: bool, *names: str) -> bool:
    for name in names:
        if name and name in os.environ:
            return env_bool(name, default)
    return default


# Content origins media URLs are resolved against.
CONTENT_ENVS: dict[str, str] = {
    "local": "http://localhost:8788",
    "stage": "https://stage-content.da.live",
    "prod": "https://content.da.live",
}


def _resolve_content_origin() -> str:
    override = _env_raw("MEDIALIB_CONTENT_ORIGIN")
    if override:
        return override.rstrip("/")
    env_name = str(_env_raw("MEDIALIB_CONTENT_ENV", default="prod") or "prod").lower()
    origin = CONTENT_ENVS.get(env_name)
    if origin is None:
        logger.warning("Unknown MEDIALIB_CONTENT_ENV=%r, using prod", env_name)
        origin = CONTENT_ENVS["prod"]
    if _env_bool(False, "MEDIALIB_PAGE_ORIGIN"):
        origin = origin.replace(".live", ".page")
    return origin


CONTENT_ORIGIN = _resolve_content_origin()
SOURCE_ORIGIN = str(_env_raw("MEDIALIB_SOURCE_ORIGIN", default="https://admin.da.live") or "").rstrip("/")
SOURCE_AUTH_TOKEN = _env_raw("MEDIALIB_SOURCE_TOKEN", default="") or ""

# Site scope ("/org/repo") and where to crawl it from.
SITE_PATH = str(_env_raw("MEDIALIB_SITE", default="") or "")
CRAWL_ROOT = _env_raw("MEDIALIB_CRAWL_ROOT", default="") or ""

# Storage backend: memory | sqlite | source
STORAGE_BACKEND = str(_env_raw("MEDIALIB_STORAGE", default="sqlite") or "sqlite").lower()
STORAGE_DB = str(_env_raw("MEDIALIB_STORAGE_DB", default=str(Path.cwd() / "medialib_index.db")))

# Scan lock
SCAN_LOCK_STALE_SECONDS = _env_float(30.0 * 60.0, "MEDIALIB_SCAN_LOCK_STALE_SECONDS", min_value=1.0, max_value=24.0 * 3600.0)

# Crawl / fetch tuning
FETCH_CONCURRENCY = _env_int(8, "MEDIALIB_FETCH_CONCURRENCY", min_value=1, max_value=64)
CRAWL_CONCURRENCY = _env_int(10, "MEDIALIB_CRAWL_CONCURRENCY", min_value=1, max_value=64)
HTTP_TIMEOUT = _env_float(30.0, "MEDIALIB_HTTP_TIMEOUT", min_value=1.0, max_value=600.0)
CRAWL_WALK_MAX_WORKERS = _env_int(2, "MEDIALIB_CRAWL_WALK_MAX_WORKERS", min_value=1, max_value=16)

# Extraction
CONTEXT_MAX_LENGTH = _env_int(100, "MEDIALIB_CONTEXT_MAX_LENGTH", min_value=10, max_value=2000)
CONTEXT_MAX_SNIPPETS = 3
CONTEXT_ANCESTOR_DEPTH = 3

# Aggregation / query
SUGGESTION_LIMIT = _env_int(50, "MEDIALIB_SUGGESTION_LIMIT", min_value=1, max_value=10_000)
QUERY_SUGGESTION_LIMIT = _env_int(10, "MEDIALIB_QUERY_SUGGESTION_LIMIT", min_value=1, max_value=1000)

# Presentation boundary
POLL_INTERVAL_SECONDS = _env_float(60.0, "MEDIALIB_POLL_INTERVAL_SECONDS", min_value=1.0, max_value=3600.0)
STATUS_DISPLAY_SECONDS = _env_float(5.0, "MEDIALIB_STATUS_DISPLAY_SECONDS", min_value=0.0, max_value=600.0)

# HTTP server
SERVER_HOST = str(_env_raw("MEDIALIB_HOST", default="127.0.0.1"))
SERVER_PORT = _env_int(8190, "MEDIALIB_PORT", min_value=1, max_value=65535)

DEBUG = _env_bool(False, "MEDIALIB_DEBUG")
