"""
Media Index Service - the boundary between the indexing engine and its readers.

Coordinates:
- ScanOrchestrator: incremental scans under the site lock
- aggregation: filter counts, suggestions, usage map and folder hierarchy
- searcher: filtered, searched and sorted media lists
- IndexWatch: reload of the persisted index when another writer changed it

Presentation intents (`filter`, `search`, `folder_filter`, `alt_text_updated`)
are plain method calls; nothing here knows about rendering.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field, fields
from typing import Any, Optional

from ...adapters.storage.base import BlobStore, StorageError
from ...config import POLL_INTERVAL_SECONDS, STATUS_DISPLAY_SECONDS
from ...path_utils import SiteRef, media_json_path
from ...shared import ErrorCode, Result, get_logger, log_structured, sanitize_error_message, timer
from .aggregation import (
    ProcessedMediaData,
    aggregate_media_data,
    count_filters,
    get_available_subtypes,
    get_document_media_breakdown,
    get_media_counts,
    process_media_data,
)
from .change_detector import IndexWatch
from .filters import available_filters
from .index_persistence import IndexPersistenceError, load_index
from .models import ScanSummary
from .scan_orchestrator import ScanOrchestrator
from .searcher import filter_media_data, get_search_suggestions
from .urls import urls_match

logger = get_logger(__name__)


@dataclass
class ScanStatus:
    is_scanning: bool = False
    pages_scanned: int = 0
    pages_processed: int = 0
    media_scanned: int = 0
    media_processed: int = 0
    duration_seconds: Optional[float] = None
    has_changes: Optional[bool] = None
    contended: bool = False
    error: Optional[str] = None
    error_code: Optional[str] = None
    completed_at: Optional[float] = None

    def begin(self) -> None:
        for f in fields(self):
            setattr(self, f.name, f.default)
        self.is_scanning = True

    def on_progress(self, kind: str, scanned: int, processed: int) -> None:
        if kind == "page":
            self.pages_scanned, self.pages_processed = scanned, processed
        else:
            self.media_scanned, self.media_processed = scanned, processed

    def finish(self, result: Result[ScanSummary]) -> None:
        self.is_scanning = False
        self.completed_at = time.monotonic()
        if result.ok and result.data is not None:
            counters = result.data.counters
            self.pages_scanned, self.pages_processed = counters.pages_scanned, counters.pages_processed
            self.media_scanned, self.media_processed = counters.media_scanned, counters.media_processed
            self.duration_seconds = result.data.duration_seconds
            self.has_changes = result.data.has_changes
        elif result.is_code(ErrorCode.SCAN_IN_PROGRESS):
            self.contended = True
        else:
            self.error = result.error
            self.error_code = result.code

    def visible(self, display_seconds: float) -> bool:
        if self.is_scanning:
            return True
        if self.completed_at is None:
            return False
        return time.monotonic() - self.completed_at <= display_seconds

    def to_dict(self) -> dict[str, Any]:
        return {
            "isScanning": self.is_scanning,
            "pagesScanned": self.pages_scanned,
            "pagesProcessed": self.pages_processed,
            "mediaScanned": self.media_scanned,
            "mediaProcessed": self.media_processed,
            "durationSeconds": self.duration_seconds,
            "hasChanges": self.has_changes,
            "contended": self.contended,
            "error": self.error,
            "code": self.error_code,
        }


@dataclass
class ViewState:
    filter_name: str = "all"
    query: str = ""
    folders: list[str] = field(default_factory=list)
    subtypes: list[str] = field(default_factory=list)


class MediaIndexService:
    """
    Holds the in-memory copy of one site's index and serves derived views.

    Args:
        store: Blob store with the persisted index
        orchestrator: Scan runner for the same site and store
    """

    def __init__(
        self,
        store: BlobStore,
        orchestrator: ScanOrchestrator,
        *,
        poll_interval: float = POLL_INTERVAL_SECONDS,
        status_display_seconds: float = STATUS_DISPLAY_SECONDS,
    ):
        self.store = store
        self.orchestrator = orchestrator
        self.site: SiteRef = orchestrator.site
        self.watch = IndexWatch()
        self.status = ScanStatus()
        self.view = ViewState()
        self._poll_interval = float(poll_interval)
        self._status_display_seconds = float(status_display_seconds)
        self._records: list[dict[str, Any]] = []
        self._media: list[dict[str, Any]] = []
        self._processed = ProcessedMediaData()
        self._scan_task: Optional[asyncio.Task] = None
        self._poll_task: Optional[asyncio.Task] = None

    # ==================== Loading ====================

    def _set_records(self, records: list[dict[str, Any]]) -> None:
        self._records = records
        with timer("aggregation", logger):
            self._media = aggregate_media_data(records)
            # Usage map and folder counts need one entry per usage, not per URL.
            self._processed = process_media_data(records)
            # Filter counts match what browsing shows: one entry per URL.
            self._processed.filter_counts = count_filters(self._media)

    async def load(self) -> Result[dict[str, Any]]:
        """Read the persisted index into memory, replacing the current copy."""
        try:
            stamp = await self.store.last_modified(media_json_path(self.site))
            records = await load_index(self.store, self.site)
        except (IndexPersistenceError, StorageError) as exc:
            logger.warning("Failed to load media index for %s: %s", self.site.key, exc)
            return Result.Err(ErrorCode.STORAGE_ERROR, sanitize_error_message(exc, "Failed to load media index"))
        self.watch.observe(stamp)
        self._set_records(records)
        return Result.Ok({"total": len(records), "media": len(self._media)})

    async def check_modified(self) -> Result[dict[str, Any]]:
        """Report whether the persisted index changed since it was last observed."""
        try:
            stamp = await self.store.last_modified(media_json_path(self.site))
        except StorageError as exc:
            return Result.Err(ErrorCode.STORAGE_ERROR, sanitize_error_message(exc, "Failed to check media index"))
        return Result.Ok({"hasChanged": self.watch.observe(stamp), "fileTimestamp": stamp})

    async def reload_if_changed(self) -> Result[bool]:
        """Reload when the persisted index changed since the last observation."""
        checked = await self.check_modified()
        if not checked.ok:
            return Result.Err(checked.code, checked.error or "Failed to check media index")
        if not checked.unwrap()["hasChanged"]:
            return Result.Ok(False)
        loaded = await self.load()
        if not loaded.ok:
            return Result.Err(loaded.code, loaded.error or "Failed to reload media index")
        return Result.Ok(True)

    # ==================== Scanning ====================

    @property
    def is_scanning(self) -> bool:
        return self._scan_task is not None and not self._scan_task.done()

    async def scan(self) -> Result[dict[str, Any]]:
        """Run a scan now and reload the index when it changed."""
        self.status.begin()
        result = await self.orchestrator.run(self.status.on_progress)
        self.status.finish(result)
        if not result.ok:
            if result.is_code(ErrorCode.SCAN_IN_PROGRESS):
                log_structured(logger, logging.INFO, "Scan deferred, lock held elsewhere", site=self.site.key)
            return Result.Err(result.code, result.error or "Scan failed", **result.meta)
        summary = result.unwrap()
        if summary.has_changes or not self._records:
            await self.load()
        return Result.Ok(summary.to_dict())

    def start_background_scan(self) -> Result[dict[str, Any]]:
        """Schedule a scan on the running loop; refuses while one is running here."""
        if self.is_scanning:
            return Result.Err(ErrorCode.SCAN_IN_PROGRESS, "Scan already in progress")
        self.status.begin()
        self._scan_task = asyncio.create_task(self.scan())
        return Result.Ok({"started": True})

    async def wait_for_scan(self) -> Optional[Result[dict[str, Any]]]:
        if self._scan_task is None:
            return None
        return await self._scan_task

    def scan_status(self) -> dict[str, Any]:
        """Current status; a finished scan stays visible for the display window."""
        if not self.status.visible(self._status_display_seconds):
            return ScanStatus().to_dict()
        return self.status.to_dict()

    # ==================== Polling ====================

    async def _poll_loop(self) -> None:
        while True:
            await asyncio.sleep(self._poll_interval)
            result = await self.reload_if_changed()
            if not result.ok:
                logger.warning("Index poll failed for %s: %s", self.site.key, result.error)
            elif result.data:
                logger.debug("Reloaded media index for %s", self.site.key)

    def start_polling(self) -> None:
        if self._poll_task is None or self._poll_task.done():
            self._poll_task = asyncio.create_task(self._poll_loop())

    async def stop(self) -> None:
        for task in (self._poll_task, self._scan_task):
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._poll_task = None

    # ==================== Views ====================

    @property
    def records(self) -> list[dict[str, Any]]:
        return self._records

    @property
    def media(self) -> list[dict[str, Any]]:
        return self._media

    def summary(self) -> dict[str, Any]:
        processed = self._processed
        return {
            "site": self.site.path,
            "totalRecords": len(self._records),
            "filterCounts": dict(processed.filter_counts),
            "mediaCounts": get_media_counts(self._media),
            "docPaths": list(processed.doc_paths),
            "mediaTypes": list(processed.media_types),
            "folderHierarchy": processed.folder_hierarchy.to_dict(),
            "subtypes": get_available_subtypes(self._media, "links"),
            "filters": available_filters(),
        }

    def usage(self, url: str) -> Optional[dict[str, Any]]:
        return self._processed.usage_map.get(url)

    def document_breakdown(self, doc: str) -> Optional[dict[str, int]]:
        return get_document_media_breakdown(self._records, doc)

    def filtered_media_data(self) -> list[dict[str, Any]]:
        return filter_media_data(
            self._media,
            filter_name=self.view.filter_name,
            query=self.view.query,
            subtypes=self.view.subtypes,
            folders=self.view.folders,
        )

    def suggestions(self, query: str) -> list[dict[str, Any]]:
        return get_search_suggestions(self._processed.search_suggestions, query)

    # ==================== Intents ====================

    def filter(self, name: str) -> list[dict[str, Any]]:
        self.view.filter_name = name or "all"
        self.view.subtypes = []
        return self.filtered_media_data()

    def search(self, query: str) -> list[dict[str, Any]]:
        self.view.query = query or ""
        return self.filtered_media_data()

    def folder_filter(self, paths: list[str]) -> list[dict[str, Any]]:
        self.view.folders = [p for p in paths or [] if p]
        return self.filtered_media_data()

    def subtype_filter(self, subtypes: list[str]) -> list[dict[str, Any]]:
        self.view.subtypes = [s for s in subtypes or [] if s]
        return self.filtered_media_data()

    def alt_text_updated(self, media: dict[str, Any]) -> Result[dict[str, Any]]:
        """
        Patch the in-memory copy after a document edit changed an alt text.

        Only the records of the edited document are touched when `doc` is
        given, and within one document the URL is matched leniently (origin
        and relative forms of the same file). The persisted index catches up
        on the next scan.
        """
        url = str((media or {}).get("mediaUrl") or (media or {}).get("url") or "")
        if not url:
            return Result.Err(ErrorCode.INVALID_INPUT, "mediaUrl is required")
        doc = str(media.get("doc") or "")
        patched: list[str] = []
        for record in self._records:
            record_url = str(record.get("url") or "")
            if doc:
                matched = record.get("doc") == doc and urls_match(record_url, url)
            else:
                matched = record_url == url
            if matched:
                record["alt"] = media.get("alt")
                patched.append(record_url)
        if not patched:
            return Result.Err(ErrorCode.NOT_FOUND, f"Media not found: {url}")
        self._set_records(self._records)
        updated = next((m for m in self._media if m.get("mediaUrl") == patched[0]), None)
        return Result.Ok({"media": updated, "patched": len(patched)})
