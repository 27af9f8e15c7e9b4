import json
from urllib.parse import urlencode

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import make_mocked_request

from medialib_backend.adapters.storage.base import dumps_blob
from medialib_backend.features.index.index_persistence import to_sheet
from medialib_backend.features.index.service import MediaIndexService
from medialib_backend.path_utils import media_json_path
from medialib_backend.routes.handlers import media as media_mod
from medialib_backend.shared import Result

O = "https://content.example.test/acme/site"


def _record(name, doc, *, alt=None, type_="img > png", last="2024-01-01T00:00:00.000Z"):
    return {
        "url": f"{O}/img/{name}",
        "name": name,
        "doc": doc,
        "alt": alt,
        "type": type_,
        "hash": f"{name}{doc}",
        "firstUsedAt": last,
        "lastUsedAt": last,
    }


def _build_media_app() -> web.Application:
    app = web.Application()
    routes = web.RouteTableDef()
    media_mod.register_media_routes(routes)
    app.add_routes(routes)
    return app


async def _call(app, method: str, path: str, query: dict | None = None) -> dict:
    url = f"{path}?{urlencode(query)}" if query else path
    req = make_mocked_request(method, url, app=app)
    match = await app.router.resolve(req)
    resp = await match.handler(req)
    return json.loads(resp.text)


@pytest_asyncio.fixture
async def index(store, site, make_orchestrator):
    records = [
        _record("a.png", "/blog/a.html", alt="Sunset", last="2024-03-01T00:00:00.000Z"),
        _record("a.png", "/index.html"),
        _record("b.png", "/index.html", last="2024-02-01T00:00:00.000Z"),
        _record("c.pdf", "/index.html", type_="link > pdf"),
    ]
    store.put_text(media_json_path(site), dumps_blob(to_sheet(records)), last_modified=1000)
    service = MediaIndexService(store, make_orchestrator())
    await service.load()
    return service


@pytest.fixture
def patched(monkeypatch, index):
    state = {"body": {}}

    async def _require_services():
        return {"index": index}, None

    async def _read_json(_request):
        return Result.Ok(state["body"])

    monkeypatch.setattr(media_mod, "_require_services", _require_services)
    monkeypatch.setattr(media_mod, "_read_json", _read_json)
    return state


@pytest.mark.asyncio
async def test_summary_route(patched) -> None:
    payload = await _call(_build_media_app(), "GET", "/medialib/summary")
    assert payload["ok"] is True
    data = payload["data"]
    assert data["totalRecords"] == 4
    assert data["mediaCounts"]["total"] == 3
    assert data["folderHierarchy"]["blog"]["count"] == 1
    assert "missingAlt" in data["filters"]


@pytest.mark.asyncio
async def test_media_route_filters_and_pages(patched) -> None:
    app = _build_media_app()
    payload = await _call(app, "GET", "/medialib/media", {"filter": "images"})
    assert [m["name"] for m in payload["data"]] == ["a.png", "b.png"]
    assert payload["meta"]["total"] == 2

    payload = await _call(app, "GET", "/medialib/media", {"filter": "all", "limit": "1", "offset": "1"})
    assert [m["name"] for m in payload["data"]] == ["b.png"]
    assert payload["meta"] == {"total": 3, "limit": 1, "offset": 1}

    payload = await _call(app, "GET", "/medialib/media", {"q": "doc:/blog"})
    assert [m["name"] for m in payload["data"]] == ["a.png"]

    payload = await _call(app, "GET", "/medialib/media", {"subtypes": "pdf,", "filter": "links"})
    assert [m["name"] for m in payload["data"]] == ["c.pdf"]

    payload = await _call(app, "GET", "/medialib/media", {"filter": "no-such-filter", "limit": "bogus"})
    assert payload["meta"]["total"] == 3


@pytest.mark.asyncio
async def test_suggestions_route(patched) -> None:
    payload = await _call(_build_media_app(), "GET", "/medialib/suggestions", {"q": "doc:/blog"})
    assert payload["data"] == [{"type": "doc", "value": "/blog/a.html", "display": "/blog/a.html"}]
    empty = await _call(_build_media_app(), "GET", "/medialib/suggestions")
    assert empty["data"] == []


@pytest.mark.asyncio
async def test_usage_route(patched) -> None:
    app = _build_media_app()
    payload = await _call(app, "GET", "/medialib/usage", {"url": f"{O}/img/a.png"})
    assert payload["data"]["usageCount"] == 2
    assert (await _call(app, "GET", "/medialib/usage"))["code"] == "INVALID_INPUT"
    assert (await _call(app, "GET", "/medialib/usage", {"url": f"{O}/none.png"}))["code"] == "NOT_FOUND"


@pytest.mark.asyncio
async def test_document_route(patched) -> None:
    app = _build_media_app()
    payload = await _call(app, "GET", "/medialib/document", {"doc": "/index.html"})
    assert payload["data"]["total"] == 3
    assert payload["data"]["links"] == 1
    assert (await _call(app, "GET", "/medialib/document"))["code"] == "INVALID_INPUT"


@pytest.mark.asyncio
async def test_alt_route_patches_memory(patched, index) -> None:
    app = _build_media_app()
    patched["body"] = {"media": {"mediaUrl": f"{O}/img/b.png", "alt": "Bee"}}
    payload = await _call(app, "POST", "/medialib/media/alt")
    assert payload["ok"] is True
    assert payload["data"]["media"]["alt"] == "Bee"

    patched["body"] = {"url": f"{O}/img/b.png", "doc": "/index.html", "alt": "Direct"}
    assert (await _call(app, "POST", "/medialib/media/alt"))["data"]["patched"] == 1

    patched["body"] = {"media": "nope"}
    assert (await _call(app, "POST", "/medialib/media/alt"))["code"] == "INVALID_INPUT"
