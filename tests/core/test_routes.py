"""
Route registration, middlewares and lazy service initialization.
"""
import json

import pytest
from aiohttp import web
from aiohttp.test_utils import make_mocked_request

from medialib_backend.adapters.storage import MemoryBlobStore
from medialib_backend.routes import register_routes
from medialib_backend.routes import registry as registry_mod
from medialib_backend.routes.core import services as services_mod
from medialib_backend.shared import ErrorCode, Result, request_id_var


def test_register_routes_is_idempotent() -> None:
    app = web.Application()
    register_routes(app)
    register_routes(app)
    assert len(app.middlewares) == 2
    paths = {(r.method, r.resource.canonical) for r in app.router.routes()}
    assert ("POST", "/medialib/scan") in paths
    assert ("GET", "/medialib/status") in paths
    assert ("GET", "/medialib/media") in paths
    assert ("POST", "/medialib/media/alt") in paths


@pytest.mark.asyncio
async def test_request_id_middleware_echoes_header() -> None:
    seen = {}

    async def handler(request):
        seen["rid"] = request_id_var.get()
        return web.Response(text="ok")

    req = make_mocked_request("GET", "/medialib/status", headers={"X-Request-ID": "abc123"})
    resp = await registry_mod.request_id_middleware(req, handler)
    assert resp.headers["X-Request-ID"] == "abc123"
    assert seen["rid"] == "abc123"
    assert request_id_var.get() == ""

    generated = await registry_mod.request_id_middleware(make_mocked_request("GET", "/medialib/status"), handler)
    assert len(generated.headers["X-Request-ID"]) == 16

    other = await registry_mod.request_id_middleware(make_mocked_request("GET", "/elsewhere"), handler)
    assert "X-Request-ID" not in other.headers


@pytest.mark.asyncio
async def test_error_middleware_converts_crashes() -> None:
    async def crash(request):
        raise KeyError("index")

    resp = await registry_mod.error_middleware(make_mocked_request("GET", "/medialib/summary"), crash)
    assert resp.status == 500
    payload = json.loads(resp.text)
    assert payload["code"] == ErrorCode.INTERNAL_ERROR.value

    with pytest.raises(KeyError):
        await registry_mod.error_middleware(make_mocked_request("GET", "/static/app.js"), crash)

    async def not_found(request):
        raise web.HTTPNotFound()

    with pytest.raises(web.HTTPNotFound):
        await registry_mod.error_middleware(make_mocked_request("GET", "/medialib/nope"), not_found)


@pytest.mark.asyncio
async def test_require_services_reports_unavailable(monkeypatch) -> None:
    async def _failing_build():
        return Result.Err(ErrorCode.INVALID_INPUT, "Invalid site path ''; expected /org/repo")

    monkeypatch.setattr(services_mod, "_services", None)
    monkeypatch.setattr(services_mod, "build_services", _failing_build)
    svc, error = await services_mod._require_services()
    assert svc is None
    assert error.code == "SERVICE_UNAVAILABLE"
    assert "expected /org/repo" in error.meta["detail"]
    assert "expected /org/repo" in services_mod.get_services_error()


@pytest.mark.asyncio
async def test_require_services_builds_once_and_loads_index(monkeypatch, tmp_path) -> None:
    from medialib_backend.deps import build_services

    calls = []

    async def _build():
        calls.append(1)
        return await build_services("/acme/site", store=MemoryBlobStore(), crawl_root=str(tmp_path))

    monkeypatch.setattr(services_mod, "_services", None)
    monkeypatch.setattr(services_mod, "build_services", _build)
    first, error = await services_mod._require_services()
    assert error is None
    second, _ = await services_mod._require_services()
    assert first is second
    assert calls == [1]
    await services_mod.shutdown_services()
    assert services_mod._services is None
