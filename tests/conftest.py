import sys
from pathlib import Path
from typing import Optional

import pytest
import pytest_asyncio

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from medialib_backend.adapters.crawl.base import start_crawl  # noqa: E402
from medialib_backend.adapters.storage import MemoryBlobStore  # noqa: E402
from medialib_backend.features.index.models import CrawlItem  # noqa: E402
from medialib_backend.path_utils import SiteRef  # noqa: E402

ORIGIN = "https://content.example.test"


class ScriptedCrawler:
    """
    In-memory site: a list of crawl items plus document bodies.

    Items are reported in insertion order. Paths in `failing` raise on read.
    """

    def __init__(self, site: SiteRef):
        self.site = site
        self.items: dict[str, CrawlItem] = {}
        self.bodies: dict[str, str] = {}
        self.failing: set[str] = set()
        self.reads: list[str] = []

    def _full(self, rel: str) -> str:
        return f"{self.site.path}/{rel.lstrip('/')}"

    def add_document(self, rel: str, html: str, last_modified: int = 1_700_000_000_000) -> str:
        path = self._full(rel)
        name, _, ext = rel.rsplit("/", 1)[-1].rpartition(".")
        self.items[path] = CrawlItem(path=path, ext=ext, name=name, last_modified=last_modified)
        self.bodies[path] = html
        return path

    def add_file(self, rel: str, last_modified: int = 1_700_000_000_000) -> str:
        path = self._full(rel)
        name, _, ext = rel.rsplit("/", 1)[-1].rpartition(".")
        self.items[path] = CrawlItem(path=path, ext=ext, name=name, last_modified=last_modified)
        return path

    def remove(self, rel: str) -> None:
        path = self._full(rel)
        self.items.pop(path, None)
        self.bodies.pop(path, None)

    async def _run(self, path, callback):
        reported = []
        for item in list(self.items.values()):
            if item.path.startswith(path):
                reported.append(item)
                await callback(item)
        return reported

    def crawl(self, path, callback):
        return start_crawl(self._run(path, callback))

    async def read_text(self, path: str) -> Optional[str]:
        self.reads.append(path)
        if path in self.failing:
            raise ConnectionError(f"fetch failed for {path}")
        return self.bodies.get(path)


@pytest.fixture
def site() -> SiteRef:
    return SiteRef("acme", "site")


@pytest.fixture
def store() -> MemoryBlobStore:
    return MemoryBlobStore()


@pytest.fixture
def crawler(site) -> ScriptedCrawler:
    return ScriptedCrawler(site)


@pytest.fixture
def make_orchestrator(store, crawler, site):
    from medialib_backend.features.index.scan_orchestrator import ScanOrchestrator

    def _make(**kwargs):
        kwargs.setdefault("content_origin", ORIGIN)
        return ScanOrchestrator(store, crawler, crawler, site, **kwargs)

    return _make


@pytest_asyncio.fixture
async def sqlite_store(tmp_path):
    from medialib_backend.adapters.storage import SqliteBlobStore

    db = SqliteBlobStore(tmp_path / "blobs.db")
    try:
        yield db
    finally:
        await db.aclose()
