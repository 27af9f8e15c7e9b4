"""
Safe JSON request parsing with a size limit. Never raises to handlers.
"""
from __future__ import annotations

import json
from typing import Optional

from aiohttp import web

from ...shared import ErrorCode, Result

DEFAULT_MAX_JSON_BYTES = 1024 * 1024
REQUEST_STREAM_CHUNK_BYTES = 64 * 1024


async def _read_json(request: web.Request, *, max_bytes: Optional[int] = None) -> Result[dict]:
    limit = int(max_bytes) if max_bytes is not None else DEFAULT_MAX_JSON_BYTES
    buf = bytearray()
    try:
        async for chunk in request.content.iter_chunked(REQUEST_STREAM_CHUNK_BYTES):
            buf.extend(chunk)
            if len(buf) > limit:
                return Result.Err(ErrorCode.INVALID_INPUT, f"JSON body too large (> {limit})", limit=limit)
    except Exception as exc:
        return Result.Err(ErrorCode.INVALID_INPUT, f"Failed to read request body: {exc}")
    if not buf:
        return Result.Ok({})
    try:
        payload = json.loads(bytes(buf).decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as exc:
        return Result.Err(ErrorCode.INVALID_JSON, f"Invalid JSON body: {exc}")
    if not isinstance(payload, dict):
        return Result.Err(ErrorCode.INVALID_JSON, "JSON body must be an object")
    return Result.Ok(payload)
