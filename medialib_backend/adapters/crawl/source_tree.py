"""
Remote tree crawler over the `/list` API (aiohttp).

Folders are listed by a fixed pool of workers sharing one queue, so at most
`MEDIALIB_CRAWL_CONCURRENCY` listings are in flight. A failed listing fails
the whole crawl: a partial tree would look like deleted documents.
"""
from __future__ import annotations

import asyncio
from typing import Any, Optional

from aiohttp import ClientError, ClientSession, ClientTimeout

from ...config import CRAWL_CONCURRENCY, HTTP_TIMEOUT, SOURCE_AUTH_TOKEN, SOURCE_ORIGIN
from ...features.index.models import CrawlItem
from ...shared import get_logger
from .base import CrawlCallback, CrawlError, CrawlHandle, start_crawl

logger = get_logger(__name__)


def _entry_to_item(entry: dict[str, Any]) -> CrawlItem:
    try:
        last_modified = int(entry.get("lastModified") or 0)
    except (TypeError, ValueError):
        last_modified = 0
    return CrawlItem(
        path=str(entry.get("path") or ""),
        ext=str(entry.get("ext") or "").lower(),
        name=str(entry.get("name") or ""),
        last_modified=last_modified,
    )


class SourceTreeCrawler:
    def __init__(
        self,
        origin: str = SOURCE_ORIGIN,
        token: str = SOURCE_AUTH_TOKEN,
        session: Optional[ClientSession] = None,
        concurrency: int = CRAWL_CONCURRENCY,
        timeout: float = HTTP_TIMEOUT,
    ):
        self.origin = str(origin or "").rstrip("/")
        self._token = token
        self._session = session
        self._owns_session = session is None
        self._concurrency = max(1, int(concurrency))
        self._timeout = ClientTimeout(total=timeout)

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._token}"} if self._token else {}

    def _client(self) -> ClientSession:
        if self._session is None:
            self._session = ClientSession(timeout=self._timeout)
        return self._session

    async def list_folder(self, folder: str) -> list[dict[str, Any]]:
        url = f"{self.origin}/list{folder.rstrip('/')}"
        try:
            async with self._client().get(url, headers=self._headers()) as resp:
                if resp.status == 404:
                    return []
                if resp.status != 200:
                    raise CrawlError(f"List API returned {resp.status} for {folder}")
                payload = await resp.json()
        except (ClientError, asyncio.TimeoutError, ValueError) as exc:
            raise CrawlError(f"List API failed for {folder}: {exc}") from exc
        return [entry for entry in payload or [] if isinstance(entry, dict) and entry.get("path")]

    async def _run(self, path: str, callback: CrawlCallback) -> list[CrawlItem]:
        queue: "asyncio.Queue[str]" = asyncio.Queue()
        queue.put_nowait(path)
        items: list[CrawlItem] = []
        failures: list[BaseException] = []

        async def worker() -> None:
            while True:
                folder = await queue.get()
                try:
                    if failures:
                        continue
                    for entry in await self.list_folder(folder):
                        if not entry.get("ext"):
                            queue.put_nowait(str(entry["path"]))
                            continue
                        item = _entry_to_item(entry)
                        items.append(item)
                        await callback(item)
                except Exception as exc:
                    logger.warning("Crawl of %s failed: %s", folder, exc)
                    failures.append(exc)
                finally:
                    queue.task_done()

        workers = [asyncio.create_task(worker()) for _ in range(self._concurrency)]
        try:
            await queue.join()
        finally:
            for task in workers:
                task.cancel()
            await asyncio.gather(*workers, return_exceptions=True)
        if failures:
            raise failures[0]
        return items

    def crawl(self, path: str, callback: CrawlCallback) -> CrawlHandle:
        return start_crawl(self._run(path, callback))

    async def aclose(self) -> None:
        session, self._session = self._session, None
        if session is not None and self._owns_session:
            await session.close()
