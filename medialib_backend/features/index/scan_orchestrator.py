"""
Scan orchestration: lock, crawl, detect changes, extract, merge, persist.

Document fetches run concurrently behind a semaphore, but every result is
folded into the merge in crawl order so one scan produces one deterministic
index.
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Any, Callable, Optional

from ...adapters.storage.base import BlobStore
from ...config import CONTENT_ORIGIN, FETCH_CONCURRENCY
from ...path_utils import SiteRef, is_index_artifact
from ...shared import (
    ErrorCode,
    Result,
    classify_extension,
    get_logger,
    is_media_extension,
    iso_from_ms,
    log_structured,
    log_success,
    now_iso,
    sanitize_error_message,
)
from .change_detector import doc_timestamps_from_records, is_document_modified
from .extractor import HtmlMediaExtractor
from .hasher import media_file_hash
from .index_persistence import IndexPersistenceError, load_index, load_snapshot, save_index, save_snapshot
from .merge import merge_index
from .models import CrawlItem, MediaUsageRecord, ScanCounters, ScanSummary
from .scan_lock import ScanAlreadyInProgress, ScanLockError, ScanLockManager
from .urls import extract_relative_path, media_name

if TYPE_CHECKING:
    from ...adapters.crawl.base import Crawler, DocumentSource

logger = get_logger(__name__)

ProgressCallback = Callable[[str, int, int], None]


class ScanOrchestrator:
    """
    Runs incremental scans of one site.

    Args:
        store: Blob store holding the index, snapshot and lock
        crawler: Tree crawler reporting the site's files
        documents: Source of document markup (often the store itself)
        site: The site being indexed
    """

    def __init__(
        self,
        store: BlobStore,
        crawler: "Crawler",
        documents: "DocumentSource",
        site: SiteRef,
        *,
        lock_manager: Optional[ScanLockManager] = None,
        content_origin: str = CONTENT_ORIGIN,
        fetch_concurrency: int = FETCH_CONCURRENCY,
    ):
        self.store = store
        self.crawler = crawler
        self.documents = documents
        self.site = site
        self.locks = lock_manager or ScanLockManager(store)
        self.content_origin = content_origin.rstrip("/")
        self.extractor = HtmlMediaExtractor(site, self.content_origin)
        self._fetch_concurrency = max(1, int(fetch_concurrency))

    def _log_scan_event(self, level: int, message: str, **context: Any) -> None:
        log_structured(logger, level, message, site=self.site.key, **context)

    async def run(self, on_progress: Optional[ProgressCallback] = None) -> Result[ScanSummary]:
        """
        Run one scan under the site lock.

        Returns:
            Ok(ScanSummary), or Err with SCAN_IN_PROGRESS (another scan holds
            the lock), SCAN_FAILED (lock or crawl failure) or STORAGE_ERROR
            (index could not be loaded or saved).
        """
        started = time.perf_counter()
        self._log_scan_event(logging.INFO, "Starting media scan")
        try:
            async with self.locks.hold(self.site):
                summary = await self._scan(started, on_progress)
        except ScanAlreadyInProgress as exc:
            self._log_scan_event(logging.INFO, "Scan skipped, already in progress", age_ms=exc.age_ms)
            return Result.Err(ErrorCode.SCAN_IN_PROGRESS, "Scan already in progress", age_ms=exc.age_ms)
        except ScanLockError as exc:
            stage = "release" if exc.stage == "release" else "lock"
            self._log_scan_event(logging.ERROR, "Scan lock failure", error=str(exc), stage=stage)
            return Result.Err(
                ErrorCode.SCAN_FAILED,
                sanitize_error_message(exc, "Scan lock unavailable"),
                stage=stage,
                retryable=True,
            )
        except IndexPersistenceError as exc:
            self._log_scan_event(logging.ERROR, "Index persistence failed", error=str(exc), path=exc.path)
            return Result.Err(
                ErrorCode.STORAGE_ERROR,
                sanitize_error_message(exc, "Index persistence failed"),
                stage="persist",
                retryable=True,
            )
        except Exception as exc:
            logger.exception("Scan of %s failed", self.site.key)
            return Result.Err(
                ErrorCode.SCAN_FAILED,
                sanitize_error_message(exc, "Scan failed"),
                stage="crawl",
                retryable=True,
            )
        self._log_scan_event(
            logging.INFO,
            "Scan completed",
            duration_seconds=round(summary.duration_seconds, 3),
            has_changes=summary.has_changes,
            total_records=summary.total_records,
            **vars(summary.counters),
        )
        if summary.has_changes:
            log_success(logger, f"Media index updated for {self.site.key} ({summary.total_records} records)")
        return Result.Ok(summary)

    def bare_media_record(self, item: CrawlItem) -> MediaUsageRecord:
        """Unattached record for a media file found directly in the tree."""
        url = f"{self.content_origin}{item.path}"
        ext = (item.ext or "").lower()
        stamp = iso_from_ms(item.last_modified) if item.last_modified else now_iso()
        return {
            "url": url,
            "name": media_name(url),
            "doc": "",
            "alt": "",
            "type": f"{classify_extension(ext)} > {ext}",
            "ctx": "",
            "hash": media_file_hash(url),
            "firstUsedAt": stamp,
            "lastUsedAt": stamp,
        }

    async def _extract_document(self, item: CrawlItem, semaphore: asyncio.Semaphore) -> list[MediaUsageRecord]:
        async with semaphore:
            html = await self.documents.read_text(item.path)
        if html is None:
            raise FileNotFoundError(f"Document disappeared before fetch: {item.path}")
        stamp = iso_from_ms(item.last_modified) if item.last_modified else None
        return self.extractor.extract(html, item.path, stamp)

    async def _scan(self, started: float, on_progress: Optional[ProgressCallback]) -> ScanSummary:
        previous = await load_index(self.store, self.site)
        snapshot = await load_snapshot(self.store, self.site)
        previous_stamps = snapshot or doc_timestamps_from_records(previous)

        counters = ScanCounters()
        semaphore = asyncio.Semaphore(self._fetch_concurrency)
        pending: list[tuple[CrawlItem, str, asyncio.Future]] = []
        crawled_docs: set[str] = set()
        current_stamps: dict[str, int] = {}
        unattached: list[MediaUsageRecord] = []

        def progress(kind: str) -> None:
            if on_progress is None:
                return
            if kind == "page":
                on_progress(kind, counters.pages_scanned, counters.pages_processed)
            else:
                on_progress(kind, counters.media_scanned, counters.media_processed)

        async def on_item(item: CrawlItem) -> None:
            if is_index_artifact(self.site, item.path):
                return
            if item.is_document:
                doc = extract_relative_path(item.path)
                crawled_docs.add(doc)
                counters.pages_scanned += 1
                if is_document_modified(previous_stamps.get(doc), item.last_modified or None):
                    task = asyncio.ensure_future(self._extract_document(item, semaphore))
                    pending.append((item, doc, task))
                else:
                    current_stamps[doc] = previous_stamps[doc]
                progress("page")
            elif is_media_extension(item.ext):
                counters.media_scanned += 1
                unattached.append(self.bare_media_record(item))
                progress("media")

        handle = self.crawler.crawl(self.site.path, on_item)
        try:
            await handle.results
        except BaseException:
            for _, _, task in pending:
                task.cancel()
            await asyncio.gather(*(task for _, _, task in pending), return_exceptions=True)
            raise

        parsed: dict[str, list[MediaUsageRecord]] = {}
        unstamped: set[str] = set()
        for item, doc, task in pending:
            try:
                usages = await task
            except Exception as exc:
                counters.errors += 1
                self._log_scan_event(logging.WARNING, "Document skipped", doc=doc, error=str(exc))
                if doc in previous_stamps:
                    current_stamps[doc] = previous_stamps[doc]
                continue
            parsed[doc] = usages
            if item.last_modified:
                current_stamps[doc] = int(item.last_modified)
            else:
                unstamped.add(doc)
            counters.pages_processed += 1
            counters.media_processed += len(usages)
            progress("page")
        counters.media_processed += len(unattached)

        outcome = merge_index(previous, parsed, crawled_docs, unattached, unstamped)
        counters.media_discovered = outcome.new_media
        if outcome.dropped_docs:
            logger.debug("Dropping records of %d deleted documents", outcome.dropped_docs)

        if outcome.has_changes:
            await save_index(self.store, self.site, outcome.records)
        if outcome.has_changes or current_stamps != snapshot:
            await save_snapshot(self.store, self.site, current_stamps)

        return ScanSummary(
            duration_seconds=max(handle.get_duration(), time.perf_counter() - started),
            has_changes=outcome.has_changes,
            counters=counters,
            total_records=len(outcome.records) if outcome.has_changes else len(previous),
        )


async def run_scan(
    store: BlobStore,
    crawler: "Crawler",
    documents: "DocumentSource",
    site: SiteRef,
    on_progress: Optional[ProgressCallback] = None,
    **options: Any,
) -> Result[ScanSummary]:
    """Functional entry point: one scan with a throwaway orchestrator."""
    return await ScanOrchestrator(store, crawler, documents, site, **options).run(on_progress)
