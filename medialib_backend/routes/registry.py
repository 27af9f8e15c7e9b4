"""
Route registration.
Coordinates the route handlers and installs the API middlewares on an aiohttp app.
"""
from __future__ import annotations

import uuid
from collections.abc import Awaitable, Callable

from aiohttp import web

from ..shared import ErrorCode, Result, get_logger, request_id_var
from .core import _json_response
from .handlers import register_media_routes, register_scan_routes

API_PREFIX = "/medialib/"
REQUEST_ID_HEADER = "X-Request-ID"
_APP_KEY_ROUTES_REGISTERED: web.AppKey[bool] = web.AppKey("_medialib_routes_registered", bool)

logger = get_logger(__name__)


@web.middleware
async def request_id_middleware(
    request: web.Request,
    handler: Callable[[web.Request], Awaitable[web.StreamResponse]],
) -> web.StreamResponse:
    """Tag every API request with a correlation id visible in logs and the response."""
    if not request.path.startswith(API_PREFIX):
        return await handler(request)
    rid = (request.headers.get(REQUEST_ID_HEADER) or "").strip()[:64] or uuid.uuid4().hex[:16]
    token = request_id_var.set(rid)
    try:
        response = await handler(request)
        response.headers[REQUEST_ID_HEADER] = rid
        return response
    finally:
        request_id_var.reset(token)


@web.middleware
async def error_middleware(
    request: web.Request,
    handler: Callable[[web.Request], Awaitable[web.StreamResponse]],
) -> web.StreamResponse:
    """Turn unhandled exceptions on API routes into a 500 Result payload."""
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except Exception:
        if not request.path.startswith(API_PREFIX):
            raise
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return _json_response(Result.Err(ErrorCode.INTERNAL_ERROR, "Internal server error"), status=500)


def register_all_routes() -> web.RouteTableDef:
    routes = web.RouteTableDef()
    register_scan_routes(routes)
    register_media_routes(routes)
    return routes


def register_routes(app: web.Application) -> None:
    if app.get(_APP_KEY_ROUTES_REGISTERED):
        logger.debug("Routes already registered on this app")
        return
    app.middlewares.append(request_id_middleware)
    app.middlewares.append(error_middleware)
    app.add_routes(register_all_routes())
    app[_APP_KEY_ROUTES_REGISTERED] = True
    logger.info("Registered media library routes under %s", API_PREFIX)
