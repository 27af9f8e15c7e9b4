"""
Crawler contract.

`crawl(path, callback)` starts walking a tree and returns immediately with a
`CrawlHandle`. The callback is awaited once per file, in discovery order;
`handle.results` completes when the walk is done.
"""
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, Protocol, runtime_checkable

from ...features.index.models import CrawlItem

CrawlCallback = Callable[[CrawlItem], Awaitable[None]]


class CrawlError(RuntimeError):
    """A folder listing failed."""


@dataclass
class CrawlHandle:
    results: "asyncio.Future[list[CrawlItem]]"
    started_at: float = field(default_factory=time.perf_counter)
    finished_at: Optional[float] = None

    def get_duration(self) -> float:
        """Seconds spent crawling so far (final once `results` is done)."""
        end = self.finished_at if self.finished_at is not None else time.perf_counter()
        return max(0.0, end - self.started_at)

    def mark_finished(self, _future: Optional[asyncio.Future] = None) -> None:
        if self.finished_at is None:
            self.finished_at = time.perf_counter()


@runtime_checkable
class Crawler(Protocol):
    def crawl(self, path: str, callback: CrawlCallback) -> CrawlHandle: ...


@runtime_checkable
class DocumentSource(Protocol):
    async def read_text(self, path: str) -> Optional[str]: ...


def start_crawl(coro: Awaitable[list[CrawlItem]]) -> CrawlHandle:
    """Schedule a crawl coroutine on the running loop and wrap it in a handle."""
    task = asyncio.ensure_future(coro)
    handle = CrawlHandle(results=task)
    task.add_done_callback(handle.mark_finished)
    return handle


def split_file_name(file_name: str) -> tuple[str, str]:
    """`hero.PNG` -> (`hero`, `png`); names without a dot have an empty ext."""
    if "." not in file_name or (file_name.startswith(".") and file_name.count(".") == 1):
        return file_name, ""
    stem, ext = file_name.rsplit(".", 1)
    return stem, ext.lower()
