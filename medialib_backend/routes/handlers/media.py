"""
Read endpoints over the in-memory index plus the alt-text intent.
"""
from aiohttp import web

from ...shared import ErrorCode, Result, get_logger
from ...utils import split_csv
from ..core import _json_response, _read_json, _require_services

logger = get_logger(__name__)

MAX_PAGE_LIMIT = 1000


def _parse_int(raw: str | None, default: int, *, minimum: int = 0, maximum: int | None = None) -> int:
    try:
        value = int(raw) if raw not in (None, "") else default
    except (TypeError, ValueError):
        return default
    value = max(minimum, value)
    return min(maximum, value) if maximum is not None else value


def register_media_routes(routes: web.RouteTableDef) -> None:
    @routes.get("/medialib/summary")
    async def summary(request: web.Request) -> web.Response:
        svc, error_result = await _require_services()
        if error_result:
            return _json_response(error_result)
        return _json_response(Result.Ok(svc["index"].summary()))

    @routes.get("/medialib/media")
    async def list_media(request: web.Request) -> web.Response:
        """
        Filtered media in browse order.

        Query params: filter, q, folders (comma separated doc paths),
        subtypes (comma separated, e.g. PNG,PDF), limit, offset.
        """
        svc, error_result = await _require_services()
        if error_result:
            return _json_response(error_result)
        index = svc["index"]
        index.view.filter_name = request.query.get("filter") or "all"
        index.view.query = request.query.get("q") or ""
        index.view.folders = split_csv(request.query.get("folders"))
        index.view.subtypes = split_csv(request.query.get("subtypes"))

        items = index.filtered_media_data()
        limit = _parse_int(request.query.get("limit"), MAX_PAGE_LIMIT, minimum=1, maximum=MAX_PAGE_LIMIT)
        offset = _parse_int(request.query.get("offset"), 0)
        page = items[offset: offset + limit]
        return _json_response(Result.Ok(page, total=len(items), limit=limit, offset=offset))

    @routes.get("/medialib/suggestions")
    async def suggestions(request: web.Request) -> web.Response:
        svc, error_result = await _require_services()
        if error_result:
            return _json_response(error_result)
        return _json_response(Result.Ok(svc["index"].suggestions(request.query.get("q") or "")))

    @routes.get("/medialib/usage")
    async def usage(request: web.Request) -> web.Response:
        svc, error_result = await _require_services()
        if error_result:
            return _json_response(error_result)
        url = (request.query.get("url") or "").strip()
        if not url:
            return _json_response(Result.Err(ErrorCode.INVALID_INPUT, "url is required"))
        info = svc["index"].usage(url)
        if info is None:
            return _json_response(Result.Err(ErrorCode.NOT_FOUND, f"Media not found: {url}"))
        return _json_response(Result.Ok(info))

    @routes.get("/medialib/document")
    async def document_breakdown(request: web.Request) -> web.Response:
        svc, error_result = await _require_services()
        if error_result:
            return _json_response(error_result)
        doc = (request.query.get("doc") or "").strip()
        if not doc:
            return _json_response(Result.Err(ErrorCode.INVALID_INPUT, "doc is required"))
        return _json_response(Result.Ok(svc["index"].document_breakdown(doc)))

    @routes.post("/medialib/media/alt")
    async def alt_text_updated(request: web.Request) -> web.Response:
        svc, error_result = await _require_services()
        if error_result:
            return _json_response(error_result)
        body = await _read_json(request)
        if not body.ok:
            return _json_response(body)
        media = (body.data or {}).get("media", body.data)
        if not isinstance(media, dict):
            return _json_response(Result.Err(ErrorCode.INVALID_INPUT, "media must be an object"))
        return _json_response(svc["index"].alt_text_updated(media))
