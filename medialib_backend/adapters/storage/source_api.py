"""
Blob store backed by the remote `/source` API (aiohttp).

GET `{origin}/source{path}` reads, multipart PUT with a `data` field writes,
DELETE removes. A 404 reads as None.
"""
from __future__ import annotations

import asyncio
from email.utils import parsedate_to_datetime
from typing import Any, Optional

from aiohttp import ClientError, ClientSession, ClientTimeout, FormData

from ...config import HTTP_TIMEOUT, SOURCE_AUTH_TOKEN, SOURCE_ORIGIN
from ...shared import get_logger
from .base import StorageError, dumps_blob, loads_blob

logger = get_logger(__name__)


class SourceApiBlobStore:
    def __init__(
        self,
        origin: str = SOURCE_ORIGIN,
        token: str = SOURCE_AUTH_TOKEN,
        session: Optional[ClientSession] = None,
        timeout: float = HTTP_TIMEOUT,
    ):
        self.origin = str(origin or "").rstrip("/")
        self._token = token
        self._session = session
        self._owns_session = session is None
        self._timeout = ClientTimeout(total=timeout)

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._token}"} if self._token else {}

    def _url(self, path: str) -> str:
        return f"{self.origin}/source{path}"

    def _client(self) -> ClientSession:
        if self._session is None:
            self._session = ClientSession(timeout=self._timeout)
        return self._session

    async def _get(self, path: str) -> tuple[Optional[str], Optional[str]]:
        try:
            async with self._client().get(self._url(path), headers=self._headers()) as resp:
                if resp.status == 404:
                    return None, None
                if resp.status != 200:
                    raise StorageError(f"Source API returned {resp.status}", path=path, operation="read")
                return await resp.text(), resp.headers.get("Last-Modified")
        except (ClientError, asyncio.TimeoutError) as exc:
            raise StorageError(f"Source API read failed: {exc}", path=path, operation="read") from exc

    async def read_text(self, path: str) -> Optional[str]:
        text, _ = await self._get(path)
        return text

    async def read_json(self, path: str) -> Any:
        return loads_blob(await self.read_text(path), path=path)

    async def last_modified(self, path: str) -> Optional[int]:
        try:
            async with self._client().head(self._url(path), headers=self._headers()) as resp:
                if resp.status == 404:
                    return None
                if resp.status != 200:
                    raise StorageError(f"Source API returned {resp.status}", path=path, operation="stat")
                stamp = resp.headers.get("Last-Modified")
        except (ClientError, asyncio.TimeoutError) as exc:
            raise StorageError(f"Source API stat failed: {exc}", path=path, operation="stat") from exc
        return _parse_http_date(stamp)

    async def list_paths(self, prefix: str) -> list[str]:
        """List the files directly under the folder `prefix` via the `/list` API."""
        folder = prefix.rstrip("/")
        try:
            async with self._client().get(f"{self.origin}/list{folder}", headers=self._headers()) as resp:
                if resp.status == 404:
                    return []
                if resp.status != 200:
                    raise StorageError(f"List API returned {resp.status}", path=prefix, operation="list")
                entries = await resp.json()
        except (ClientError, asyncio.TimeoutError, ValueError) as exc:
            raise StorageError(f"List API failed: {exc}", path=prefix, operation="list") from exc
        return sorted(
            str(entry["path"]) for entry in entries or []
            if isinstance(entry, dict) and entry.get("ext") and str(entry.get("path") or "").startswith(prefix)
        )

    async def write_json(self, path: str, data: Any) -> None:
        form = FormData()
        form.add_field("data", dumps_blob(data), content_type="application/json", filename=path.rsplit("/", 1)[-1])
        try:
            async with self._client().put(self._url(path), data=form, headers=self._headers()) as resp:
                if resp.status not in (200, 201, 204):
                    raise StorageError(f"Source API returned {resp.status}", path=path, operation="write")
        except (ClientError, asyncio.TimeoutError) as exc:
            raise StorageError(f"Source API write failed: {exc}", path=path, operation="write") from exc

    async def delete(self, path: str) -> None:
        try:
            async with self._client().delete(self._url(path), headers=self._headers()) as resp:
                if resp.status not in (200, 204, 404):
                    raise StorageError(f"Source API returned {resp.status}", path=path, operation="delete")
        except (ClientError, asyncio.TimeoutError) as exc:
            raise StorageError(f"Source API delete failed: {exc}", path=path, operation="delete") from exc

    async def aclose(self) -> None:
        session, self._session = self._session, None
        if session is not None and self._owns_session:
            await session.close()


def _parse_http_date(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    try:
        return int(parsedate_to_datetime(value).timestamp() * 1000)
    except (TypeError, ValueError):
        logger.debug("Unparseable Last-Modified header: %r", value)
        return None
