"""
Scan trigger and scan status endpoints.
"""
from aiohttp import web

from ...shared import ErrorCode, Result, get_logger
from ...utils import parse_bool
from ..core import _json_response, _read_json, _require_services

logger = get_logger(__name__)


def register_scan_routes(routes: web.RouteTableDef) -> None:
    @routes.post("/medialib/scan")
    async def trigger_scan(request: web.Request) -> web.Response:
        """
        Start a scan of the configured site.

        Body: `{"wait": bool}`; with `wait` the response carries the scan
        summary, otherwise the scan runs in the background.
        """
        svc, error_result = await _require_services()
        if error_result:
            return _json_response(error_result)
        body = await _read_json(request)
        if not body.ok:
            return _json_response(body)
        index = svc["index"]

        if parse_bool((body.data or {}).get("wait"), False):
            if index.is_scanning:
                return _json_response(Result.Err(ErrorCode.SCAN_IN_PROGRESS, "Scan already in progress"))
            return _json_response(await index.scan())
        return _json_response(index.start_background_scan())

    @routes.get("/medialib/status")
    async def scan_status(request: web.Request) -> web.Response:
        svc, error_result = await _require_services()
        if error_result:
            return _json_response(error_result)
        return _json_response(Result.Ok(svc["index"].scan_status()))
