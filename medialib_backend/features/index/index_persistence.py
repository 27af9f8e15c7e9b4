"""
Load and save the persisted index sheet and the last-modified snapshot.

The index is a sheet `{total, limit, offset, data, ":type": "sheet"}`. The
snapshot keeps one sheet per top-level folder (`root` for documents at the
site root) mapping each crawled document to its last-modified time.
"""
from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from ...adapters.storage.base import BlobStore, StorageError
from ...path_utils import SiteRef, last_modified_data_path, media_json_path, media_library_path
from ...shared import get_logger
from .models import MediaUsageRecord

logger = get_logger(__name__)

SHEET_TYPE = "sheet"
ROOT_FOLDER = "root"


class IndexPersistenceError(RuntimeError):
    """The index or snapshot could not be read or written."""

    def __init__(self, message: str, *, path: str = ""):
        super().__init__(message)
        self.path = path


def to_sheet(rows: list[Any]) -> dict[str, Any]:
    return {"total": len(rows), "limit": len(rows), "offset": 0, "data": rows, ":type": SHEET_TYPE}


def sheet_rows(payload: Any) -> list[Any]:
    """Rows of a sheet payload; a bare list is accepted as-is."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, Mapping):
        data = payload.get("data")
        if isinstance(data, list):
            return data
    return []


def clean_records(records: Iterable[Mapping[str, Any]]) -> list[MediaUsageRecord]:
    """Drop rows lacking `url` or `name`."""
    return [dict(r) for r in records if isinstance(r, Mapping) and r.get("url") and r.get("name")]  # type: ignore[misc]


async def load_index(store: BlobStore, site: SiteRef) -> list[MediaUsageRecord]:
    """
    Read the persisted index. A missing index is an empty one.

    Raises:
        IndexPersistenceError: the index exists but cannot be read
    """
    path = media_json_path(site)
    try:
        payload = await store.read_json(path)
    except StorageError as exc:
        raise IndexPersistenceError(f"Failed to load media index: {exc}", path=path) from exc
    return clean_records(sheet_rows(payload))


async def save_index(store: BlobStore, site: SiteRef, records: list[MediaUsageRecord]) -> None:
    path = media_json_path(site)
    try:
        await store.write_json(path, to_sheet(clean_records(records)))
    except StorageError as exc:
        raise IndexPersistenceError(f"Failed to save media index: {exc}", path=path) from exc


def folder_of(doc: str) -> str:
    """Top-level folder of a site-relative document path."""
    parts = [p for p in str(doc or "").split("/") if p]
    return parts[0] if len(parts) > 1 else ROOT_FOLDER


async def load_snapshot(store: BlobStore, site: SiteRef) -> dict[str, int]:
    """
    Read every per-folder snapshot file into `{doc: last_modified_ms}`.

    Unreadable folder files are skipped with a warning; the documents they
    covered simply look modified on the next scan.
    """
    prefix = f"{media_library_path(site)}/lastmodified-data/"
    try:
        paths = await store.list_paths(prefix)
    except StorageError as exc:
        logger.warning("Last-modified snapshot unavailable for %s: %s", site.key, exc)
        return {}
    stamps: dict[str, int] = {}
    for path in paths:
        if not path.endswith(".json"):
            continue
        try:
            rows = sheet_rows(await store.read_json(path))
        except StorageError as exc:
            logger.warning("Skipping unreadable snapshot %s: %s", path, exc)
            continue
        for row in rows:
            if not isinstance(row, Mapping) or not row.get("path"):
                continue
            try:
                stamps[str(row["path"])] = int(row.get("lastModified") or 0)
            except (TypeError, ValueError):
                continue
    return stamps


async def save_snapshot(store: BlobStore, site: SiteRef, stamps: Mapping[str, int]) -> None:
    """
    Persist `stamps` grouped by top-level folder and remove folder files that
    no longer have documents.

    Raises:
        IndexPersistenceError: a folder file could not be written or removed
    """
    grouped: dict[str, list[dict[str, Any]]] = {}
    for doc in sorted(stamps):
        grouped.setdefault(folder_of(doc), []).append({"path": doc, "lastModified": int(stamps[doc])})

    prefix = f"{media_library_path(site)}/lastmodified-data/"
    wanted = {last_modified_data_path(site, name) for name in grouped}
    try:
        for name, rows in grouped.items():
            await store.write_json(last_modified_data_path(site, name), to_sheet(rows))
        for path in await store.list_paths(prefix):
            if path not in wanted:
                await store.delete(path)
    except StorageError as exc:
        raise IndexPersistenceError(f"Failed to save last-modified snapshot: {exc}", path=prefix) from exc
