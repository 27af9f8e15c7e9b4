"""
Dependency injection - builds services.
Simple, debug-friendly DI without framework magic.
"""
from __future__ import annotations

from typing import Any, Optional

from .adapters.crawl import FileSystemCrawler, SourceTreeCrawler
from .adapters.storage import BlobStore, MemoryBlobStore, SourceApiBlobStore, SqliteBlobStore
from .config import CONTENT_ORIGIN, CRAWL_ROOT, FETCH_CONCURRENCY, SITE_PATH, STORAGE_BACKEND, STORAGE_DB
from .features.index import MediaIndexService, ScanOrchestrator
from .features.index.scan_lock import ScanLockManager
from .path_utils import SiteRef
from .shared import ErrorCode, Result, get_logger, log_success

logger = get_logger(__name__)

STORAGE_BACKENDS = ("memory", "sqlite", "source")


def _build_store(backend: str, db_path: str) -> Result[BlobStore]:
    if backend == "memory":
        return Result.Ok(MemoryBlobStore())
    if backend == "sqlite":
        return Result.Ok(SqliteBlobStore(db_path))
    if backend == "source":
        return Result.Ok(SourceApiBlobStore())
    return Result.Err(ErrorCode.INVALID_INPUT, f"Unknown storage backend {backend!r}; expected one of {STORAGE_BACKENDS}")


def _build_crawler(crawl_root: str, site: SiteRef, store: BlobStore) -> tuple[Any, Any]:
    """Pick the crawler and the document source that goes with it."""
    if crawl_root:
        crawler = FileSystemCrawler(crawl_root, site.path)
        return crawler, crawler
    documents = store if isinstance(store, SourceApiBlobStore) else SourceApiBlobStore()
    return SourceTreeCrawler(), documents


async def build_services(
    site_path: Optional[str] = None,
    *,
    storage_backend: Optional[str] = None,
    db_path: Optional[str] = None,
    crawl_root: Optional[str] = None,
    store: Optional[BlobStore] = None,
) -> Result[dict]:
    """
    Build all services (DI container).

    Args:
        site_path: `/org/repo` of the indexed site (default: MEDIALIB_SITE)
        storage_backend: memory | sqlite | source (default: MEDIALIB_STORAGE)
        db_path: SQLite file for the sqlite backend (default: MEDIALIB_STORAGE_DB)
        crawl_root: Local directory mirroring the site (default: MEDIALIB_CRAWL_ROOT)
        store: Prebuilt blob store, overrides `storage_backend`

    Returns:
        Result[dict] of service instances
    """
    logger.info("Building services...")
    try:
        site = SiteRef.parse(site_path if site_path is not None else SITE_PATH)
    except ValueError as exc:
        logger.error("Invalid site configuration: %s", exc)
        return Result.Err(ErrorCode.INVALID_INPUT, str(exc))

    if store is None:
        store_res = _build_store((storage_backend or STORAGE_BACKEND).lower(), db_path or STORAGE_DB)
        if not store_res.ok or store_res.data is None:
            return Result.Err(store_res.code, store_res.error or "Failed to initialize storage")
        store = store_res.data

    root = crawl_root if crawl_root is not None else CRAWL_ROOT
    crawler, documents = _build_crawler(root, site, store)

    orchestrator = ScanOrchestrator(
        store,
        crawler,
        documents,
        site,
        lock_manager=ScanLockManager(store),
        content_origin=CONTENT_ORIGIN,
        fetch_concurrency=FETCH_CONCURRENCY,
    )
    index_service = MediaIndexService(store, orchestrator)

    services = {
        "site": site,
        "store": store,
        "crawler": crawler,
        "documents": documents,
        "index": index_service,
    }
    log_success(logger, f"Services initialized for {site.path} ({type(store).__name__}, {type(crawler).__name__})")
    return Result.Ok(services)


async def dispose_services(services: dict) -> None:
    """Close everything `build_services` opened; one failure does not stop the rest."""
    index = services.get("index")
    if index is not None:
        await index.stop()
    closed: set[int] = set()
    for key in ("crawler", "documents", "store"):
        resource = services.get(key)
        if resource is None or id(resource) in closed or not hasattr(resource, "aclose"):
            continue
        closed.add(id(resource))
        try:
            await resource.aclose()
        except Exception as exc:
            logger.warning("Error closing %s: %s", key, exc, exc_info=True)
