"""
Local directory crawler.

The walk runs on a thread-pool executor and pushes entries into a thread-safe
queue drained by the event loop, so large trees never block the loop.
The directory `root` stands in for the site path `/{org}/{repo}`. An
unreadable directory fails the crawl rather than yielding a partial tree.
"""
from __future__ import annotations

import asyncio
import os
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from queue import Queue
from typing import Optional, Union

from ...config import CRAWL_WALK_MAX_WORKERS
from ...features.index.models import CrawlItem
from ...shared import get_logger
from .base import CrawlCallback, CrawlError, CrawlHandle, split_file_name, start_crawl

logger = get_logger(__name__)

_WALK_EXECUTOR = ThreadPoolExecutor(max_workers=CRAWL_WALK_MAX_WORKERS, thread_name_prefix="medialib-walk")

_WalkEntry = Optional[Union[tuple[str, int], Exception]]


class FileSystemCrawler:
    def __init__(self, root: str | Path, site_path: str):
        self.root = Path(root).resolve()
        self.site_path = "/" + str(site_path or "").strip("/")

    def _to_crawl_path(self, file_path: str) -> str:
        rel = Path(file_path).resolve().relative_to(self.root).as_posix()
        return f"{self.site_path}/{rel}"

    def to_local_path(self, crawl_path: str) -> Optional[Path]:
        """Map a crawl path back onto the local tree; None outside of it."""
        prefix = self.site_path + "/"
        if not str(crawl_path or "").startswith(prefix):
            return None
        candidate = (self.root / crawl_path[len(prefix):]).resolve()
        try:
            candidate.relative_to(self.root)
        except ValueError:
            return None
        return candidate

    @staticmethod
    def _iter_files(directory: Path):
        stack: list[Path] = [directory]
        while stack:
            current = stack.pop()
            try:
                with os.scandir(current) as it:
                    entries = sorted(it, key=lambda e: e.name)
            except OSError as exc:
                raise CrawlError(f"Unreadable directory {current}: {exc}") from exc
            subdirs: list[Path] = []
            for entry in entries:
                try:
                    if entry.is_dir(follow_symlinks=False):
                        subdirs.append(Path(entry.path))
                    elif entry.is_file(follow_symlinks=True):
                        yield entry.path, int(entry.stat().st_mtime_ns // 1_000_000)
                except FileNotFoundError:
                    # Removed while walking.
                    continue
                except OSError as exc:
                    raise CrawlError(f"Unreadable entry {entry.path}: {exc}") from exc
            stack.extend(reversed(subdirs))

    def _walk_and_enqueue(self, directory: Path, stop_event: threading.Event, q: "Queue[_WalkEntry]") -> None:
        """Producer running on the executor; a walk error is handed to the consumer."""
        try:
            for entry in self._iter_files(directory):
                if stop_event.is_set():
                    break
                q.put(entry)
        except Exception as exc:
            logger.warning("Filesystem walk failed for %s: %s", directory, exc)
            q.put(exc)
        finally:
            q.put(None)

    async def _run(self, path: str, callback: CrawlCallback) -> list[CrawlItem]:
        base = str(path or "").rstrip("/")
        directory = self.root if base == self.site_path else self.to_local_path(base)
        if directory is None or not directory.is_dir():
            logger.warning("Crawl root does not exist: %s", path)
            return []

        loop = asyncio.get_running_loop()
        q: "Queue[_WalkEntry]" = Queue(maxsize=1000)
        stop_event = threading.Event()
        producer = loop.run_in_executor(_WALK_EXECUTOR, self._walk_and_enqueue, directory, stop_event, q)
        items: list[CrawlItem] = []
        try:
            while True:
                entry = await loop.run_in_executor(None, q.get)
                if entry is None:
                    break
                if isinstance(entry, Exception):
                    if isinstance(entry, CrawlError):
                        raise entry
                    raise CrawlError(f"Filesystem walk failed for {directory}: {entry}") from entry
                file_path, mtime_ms = entry
                stem, ext = split_file_name(os.path.basename(file_path))
                item = CrawlItem(path=self._to_crawl_path(file_path), ext=ext, name=stem, last_modified=mtime_ms)
                items.append(item)
                await callback(item)
        finally:
            stop_event.set()
            while not producer.done():
                # Unblock a producer waiting on a full queue.
                while not q.empty():
                    q.get_nowait()
                await asyncio.sleep(0.01)
        return items

    def crawl(self, path: str, callback: CrawlCallback) -> CrawlHandle:
        return start_crawl(self._run(path, callback))

    async def read_text(self, path: str) -> Optional[str]:
        local = self.to_local_path(path)
        if local is None or not local.is_file():
            return None
        return await asyncio.to_thread(local.read_text, encoding="utf-8", errors="replace")
