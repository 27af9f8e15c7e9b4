import asyncio
import time

import pytest

from medialib_backend.adapters.storage import StorageError
from medialib_backend.adapters.storage.base import dumps_blob
from medialib_backend.features.index.index_persistence import to_sheet
from medialib_backend.features.index.scan_lock import ScanLockManager
from medialib_backend.features.index.service import MediaIndexService, ScanStatus
from medialib_backend.path_utils import media_json_path
from medialib_backend.shared import ErrorCode

ORIGIN = "https://content.example.test"


def _record(name, doc, alt=None, type_="img > png"):
    return {
        "url": f"{ORIGIN}/acme/site/img/{name}",
        "name": name,
        "doc": doc,
        "alt": alt,
        "type": type_,
        "hash": name,
        "firstUsedAt": "2024-01-01T00:00:00.000Z",
        "lastUsedAt": "2024-01-01T00:00:00.000Z",
    }


def _seed(store, site, records, last_modified):
    store.put_text(media_json_path(site), dumps_blob(to_sheet(records)), last_modified=last_modified)


@pytest.fixture
def make_service(store, make_orchestrator):
    def _make(**kwargs):
        return MediaIndexService(store, make_orchestrator(), **kwargs)

    return _make


@pytest.mark.asyncio
async def test_load_empty_index(make_service) -> None:
    service = make_service()
    res = await service.load()
    assert res.ok
    assert res.data == {"total": 0, "media": 0}
    assert service.summary()["totalRecords"] == 0


@pytest.mark.asyncio
async def test_load_reports_storage_error(make_service, store, monkeypatch) -> None:
    async def _boom(path):
        raise StorageError("backend down", path=path, operation="read")

    monkeypatch.setattr(store, "read_json", _boom)
    res = await make_service().load()
    assert res.is_code(ErrorCode.STORAGE_ERROR)


@pytest.mark.asyncio
async def test_scan_loads_views(make_service, crawler) -> None:
    crawler.add_document("index.html", '<img src="/img/a.png"><a href="/files/guide.pdf">Guide</a>')
    crawler.add_document("blog/post.html", '<img src="/img/a.png" alt="A">')
    service = make_service()

    res = await service.scan()
    assert res.ok
    assert res.data["hasChanges"] is True
    assert len(service.records) == 3
    assert len(service.media) == 2

    summary = service.summary()
    assert summary["site"] == "/acme/site"
    assert summary["mediaCounts"]["links"] == 1
    assert summary["subtypes"] == [{"subtype": "PDF", "count": 1}]
    assert "blog" in summary["folderHierarchy"]
    assert service.usage(f"{ORIGIN}/acme/site/img/a.png")["usageCount"] == 2
    assert service.document_breakdown("/blog/post.html")["total"] == 1

    status = service.scan_status()
    assert status["isScanning"] is False
    assert status["pagesScanned"] == 2
    assert status["hasChanges"] is True


@pytest.mark.asyncio
async def test_status_clears_after_display_window(make_service, crawler) -> None:
    crawler.add_document("index.html", '<img src="/img/a.png">')
    service = make_service(status_display_seconds=5)
    await service.scan()
    assert service.scan_status()["pagesScanned"] == 1

    service.status.completed_at = time.monotonic() - 60
    assert service.scan_status() == ScanStatus().to_dict()


@pytest.mark.asyncio
async def test_contended_scan_is_reported_not_failed(make_service, store, site, crawler) -> None:
    crawler.add_document("index.html", '<img src="/img/a.png">')
    await ScanLockManager(store).acquire(site)
    service = make_service()

    res = await service.scan()
    assert res.is_code(ErrorCode.SCAN_IN_PROGRESS)
    status = service.scan_status()
    assert status["contended"] is True
    assert status["error"] is None


@pytest.mark.asyncio
async def test_background_scan_refuses_overlap(make_service, crawler) -> None:
    crawler.add_document("index.html", '<img src="/img/a.png">')
    service = make_service()

    assert service.start_background_scan().ok
    assert service.is_scanning is True
    assert service.start_background_scan().is_code(ErrorCode.SCAN_IN_PROGRESS)
    res = await service.wait_for_scan()
    assert res.ok
    assert service.is_scanning is False
    assert len(service.records) == 1


@pytest.mark.asyncio
async def test_reload_if_changed_follows_file_timestamp(make_service, store, site) -> None:
    _seed(store, site, [_record("a.png", "/index.html")], last_modified=1000)
    service = make_service()
    await service.load()

    assert (await service.reload_if_changed()).data is False
    _seed(store, site, [_record("a.png", "/index.html"), _record("b.png", "/index.html")], last_modified=2000)
    checked = await service.check_modified()
    assert checked.data == {"hasChanged": True, "fileTimestamp": 2000}
    service.watch.reset()
    assert (await service.reload_if_changed()).data is True
    assert len(service.records) == 2


@pytest.mark.asyncio
async def test_polling_reloads_external_changes(make_service, store, site) -> None:
    _seed(store, site, [], last_modified=1000)
    service = make_service(poll_interval=0.01)
    await service.load()
    service.start_polling()
    try:
        _seed(store, site, [_record("a.png", "/index.html")], last_modified=2000)
        for _ in range(100):
            if service.records:
                break
            await asyncio.sleep(0.01)
        assert len(service.records) == 1
    finally:
        await service.stop()


@pytest.mark.asyncio
async def test_view_intents(make_service, store, site) -> None:
    _seed(
        store,
        site,
        [
            _record("a.png", "/blog/a.html", alt="Sunset"),
            _record("b.png", "/index.html"),
            _record("c.pdf", "/index.html", type_="link > pdf"),
        ],
        last_modified=1000,
    )
    service = make_service()
    await service.load()

    assert {m["name"] for m in service.filter("images")} == {"a.png", "b.png"}
    assert [m["name"] for m in service.search("sunset")] == ["a.png"]
    service.search("")
    assert [m["name"] for m in service.folder_filter(["/index.html"])] == ["b.png"]
    service.folder_filter([])
    assert [m["name"] for m in service.filter("links")] == ["c.pdf"]
    assert [m["name"] for m in service.subtype_filter(["pdf"])] == ["c.pdf"]
    assert [s["value"] for s in service.suggestions("doc:/blog")] == ["/blog/a.html"]


@pytest.mark.asyncio
async def test_alt_text_updated(make_service, store, site) -> None:
    _seed(store, site, [_record("a.png", "/x.html"), _record("a.png", "/y.html")], last_modified=1000)
    service = make_service()
    await service.load()
    url = f"{ORIGIN}/acme/site/img/a.png"

    res = service.alt_text_updated({"mediaUrl": url, "doc": "/y.html", "alt": "New alt"})
    assert res.ok
    assert res.data["patched"] == 1
    assert [r["alt"] for r in service.records] == [None, "New alt"]

    assert service.alt_text_updated({"url": url, "alt": "Both"}).data["patched"] == 2
    assert service.alt_text_updated({"url": f"{ORIGIN}/missing.png"}).is_code(ErrorCode.NOT_FOUND)
    assert service.alt_text_updated({}).is_code(ErrorCode.INVALID_INPUT)

    relative = service.alt_text_updated({"mediaUrl": "/acme/site/img/a.png", "doc": "/x.html", "alt": "Lenient"})
    assert relative.ok
    assert relative.data["patched"] == 1
    assert relative.data["media"]["mediaUrl"] == url
    assert [r["alt"] for r in service.records] == ["Lenient", "Both"]


@pytest.mark.asyncio
async def test_summary_filter_counts_reflect_usage(make_service, store, site) -> None:
    _seed(store, site, [_record("a.png", "/x.html"), _record("b.png", "")], last_modified=1000)
    service = make_service()
    await service.load()

    counts = service.summary()["filterCounts"]
    assert counts["used"] == 1
    assert counts["unused"] == 1
    assert len(service.filter("used")) == counts["used"]
