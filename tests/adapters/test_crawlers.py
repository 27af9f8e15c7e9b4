import os
from types import SimpleNamespace

import pytest

from medialib_backend.adapters.crawl import CrawlError, FileSystemCrawler, SourceTreeCrawler
from medialib_backend.adapters.crawl import fs_crawler as fs_mod
from medialib_backend.adapters.crawl.base import split_file_name

from fake_http import FakeResponse, FakeSession

API = "https://admin.example.test"
MTIME_NS = 1_700_000_000_000_000_000


def _site_tree(root):
    (root / "blog").mkdir()
    (root / "img").mkdir()
    (root / "index.html").write_text('<img src="/img/Hero.PNG">', encoding="utf-8")
    (root / "blog" / "post.html").write_text("<p>post</p>", encoding="utf-8")
    (root / "img" / "Hero.PNG").write_bytes(b"\x89PNG")
    os.utime(root / "index.html", ns=(MTIME_NS, MTIME_NS))
    return root


async def _collect(crawler, path):
    seen = []

    async def on_item(item):
        seen.append(item)

    handle = crawler.crawl(path, on_item)
    results = await handle.results
    return seen, results, handle


def test_split_file_name() -> None:
    assert split_file_name("hero.PNG") == ("hero", "png")
    assert split_file_name("archive.tar.gz") == ("archive.tar", "gz")
    assert split_file_name("README") == ("README", "")
    assert split_file_name(".env") == (".env", "")


@pytest.mark.asyncio
async def test_fs_crawler_reports_every_file(tmp_path) -> None:
    crawler = FileSystemCrawler(_site_tree(tmp_path), "/acme/site")
    seen, results, handle = await _collect(crawler, "/acme/site")

    assert seen == results
    assert [i.path for i in seen] == [
        "/acme/site/index.html",
        "/acme/site/blog/post.html",
        "/acme/site/img/Hero.PNG",
    ]
    hero = seen[-1]
    assert (hero.name, hero.ext) == ("Hero", "png")
    assert seen[0].last_modified == 1_700_000_000_000
    assert seen[0].is_document is True
    assert handle.get_duration() >= 0


@pytest.mark.asyncio
async def test_fs_crawler_subtree_and_missing_root(tmp_path) -> None:
    crawler = FileSystemCrawler(_site_tree(tmp_path), "/acme/site")
    seen, _, _ = await _collect(crawler, "/acme/site/blog")
    assert [i.path for i in seen] == ["/acme/site/blog/post.html"]

    seen, results, _ = await _collect(crawler, "/acme/site/nope")
    assert seen == results == []


@pytest.mark.asyncio
async def test_fs_crawler_fails_on_unreadable_directory(tmp_path, monkeypatch) -> None:
    crawler = FileSystemCrawler(_site_tree(tmp_path), "/acme/site")
    real_scandir = os.scandir

    def _scandir(path):
        if os.path.basename(str(path)) == "blog":
            raise PermissionError(13, "Permission denied", str(path))
        return real_scandir(path)

    monkeypatch.setattr(fs_mod, "os", SimpleNamespace(scandir=_scandir, path=os.path))
    with pytest.raises(CrawlError, match="Unreadable directory"):
        await _collect(crawler, "/acme/site")


@pytest.mark.asyncio
async def test_fs_crawler_reads_documents_inside_root_only(tmp_path) -> None:
    site = tmp_path / "site"
    site.mkdir()
    _site_tree(site)
    (tmp_path / "secret.txt").write_text("keep out", encoding="utf-8")
    crawler = FileSystemCrawler(site, "acme/site")

    assert await crawler.read_text("/acme/site/blog/post.html") == "<p>post</p>"
    assert await crawler.read_text("/acme/site/../secret.txt") is None
    assert await crawler.read_text("/other/site/index.html") is None
    assert await crawler.read_text("/acme/site/absent.html") is None


def _tree_session(blog_response=None):
    return FakeSession({
        ("GET", f"{API}/list/acme/site"): FakeResponse(200, [
            {"path": "/acme/site/blog", "name": "blog"},
            {"path": "/acme/site/index.html", "ext": "html", "name": "index", "lastModified": 1000},
        ]),
        ("GET", f"{API}/list/acme/site/blog"): blog_response or FakeResponse(200, [
            {"path": "/acme/site/blog/post.html", "ext": "html", "name": "post", "lastModified": "2000"},
            {"path": "/acme/site/blog/pic.PNG", "ext": "PNG", "name": "pic"},
        ]),
    })


@pytest.mark.asyncio
async def test_source_tree_crawler_walks_folders() -> None:
    session = _tree_session()
    crawler = SourceTreeCrawler(API, token="t", session=session, concurrency=2)
    seen, results, _ = await _collect(crawler, "/acme/site")

    assert sorted(i.path for i in results) == [
        "/acme/site/blog/pic.PNG",
        "/acme/site/blog/post.html",
        "/acme/site/index.html",
    ]
    assert len(seen) == 3
    by_path = {i.path: i for i in results}
    assert by_path["/acme/site/blog/post.html"].last_modified == 2000
    assert by_path["/acme/site/blog/pic.PNG"].ext == "png"
    assert all(call[2]["headers"] == {"Authorization": "Bearer t"} for call in session.calls)
    await crawler.aclose()


@pytest.mark.asyncio
async def test_source_tree_crawler_fails_on_listing_error() -> None:
    crawler = SourceTreeCrawler(API, session=_tree_session(FakeResponse(503)), concurrency=3)

    async def on_item(item):
        return None

    handle = crawler.crawl("/acme/site", on_item)
    with pytest.raises(CrawlError):
        await handle.results
