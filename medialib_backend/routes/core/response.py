"""
Response utilities for route handlers.
"""
import math

from aiohttp import web

from ...shared import Result


def _json_response(result: Result, status: int | None = None) -> web.Response:
    """
    Convert Result to JSON response.

    Business and validation errors are HTTP 200 with `{ok: false, ...}`; an
    explicit status is only passed for genuine server faults.
    """
    if status is None:
        status = 200

    payload = _sanitize_json_payload(
        {
            "ok": result.ok,
            "data": result.data,
            "error": result.error,
            "code": result.code,
            "meta": result.meta,
        }
    )
    response = web.json_response(payload, status=status)

    meta = result.meta if isinstance(result.meta, dict) else {}
    retry_after = meta.get("retry_after")
    if retry_after is not None:
        try:
            response.headers["Retry-After"] = str(int(retry_after))
        except (TypeError, ValueError):
            pass
    return response


def _sanitize_json_payload(value):
    """
    Normalize payload values so they are always valid strict JSON.
    NaN/Infinity become None; sets become sorted lists.
    """
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, dict):
        return {k: _sanitize_json_payload(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_sanitize_json_payload(v) for v in value]
    if isinstance(value, (set, frozenset)):
        return sorted(_sanitize_json_payload(v) for v in value)
    return value
