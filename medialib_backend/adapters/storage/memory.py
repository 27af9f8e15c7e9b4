"""In-process blob store. Used by tests and by `MEDIALIB_STORAGE=memory`."""
from __future__ import annotations

import asyncio
from typing import Any, Optional

from ...shared import ms
from .base import dumps_blob, loads_blob


class MemoryBlobStore:
    def __init__(self, initial: Optional[dict[str, Any]] = None):
        self._blobs: dict[str, str] = {}
        self._stamps: dict[str, int] = {}
        self._lock = asyncio.Lock()
        for path, value in (initial or {}).items():
            self.put_text(path, value if isinstance(value, str) else dumps_blob(value))

    def put_text(self, path: str, text: str, last_modified: Optional[int] = None) -> None:
        """Seed raw content synchronously (documents, fixtures)."""
        self._blobs[path] = text
        self._stamps[path] = int(last_modified if last_modified is not None else ms())

    def paths(self) -> list[str]:
        return sorted(self._blobs)

    async def read_text(self, path: str) -> Optional[str]:
        return self._blobs.get(path)

    async def read_json(self, path: str) -> Any:
        return loads_blob(self._blobs.get(path), path=path)

    async def write_json(self, path: str, data: Any) -> None:
        text = dumps_blob(data)
        async with self._lock:
            self.put_text(path, text)

    async def delete(self, path: str) -> None:
        async with self._lock:
            self._blobs.pop(path, None)
            self._stamps.pop(path, None)

    async def last_modified(self, path: str) -> Optional[int]:
        return self._stamps.get(path)

    async def list_paths(self, prefix: str) -> list[str]:
        return [p for p in self.paths() if p.startswith(prefix)]

    async def aclose(self) -> None:
        return None
