"""
Path-addressed blob storage contract.

Reads of a missing path return None instead of raising. Writes and deletes
raise StorageError so callers can treat persistence failures as fatal.
"""
from __future__ import annotations

import json
from typing import Any, Optional, Protocol, runtime_checkable


class StorageError(RuntimeError):
    """A blob read, write or delete failed for a reason other than absence."""

    def __init__(self, message: str, *, path: str = "", operation: str = ""):
        super().__init__(message)
        self.path = path
        self.operation = operation


@runtime_checkable
class BlobStore(Protocol):
    async def read_text(self, path: str) -> Optional[str]: ...

    async def read_json(self, path: str) -> Any: ...

    async def write_json(self, path: str, data: Any) -> None: ...

    async def delete(self, path: str) -> None: ...

    async def last_modified(self, path: str) -> Optional[int]: ...

    async def list_paths(self, prefix: str) -> list[str]: ...

    async def aclose(self) -> None: ...


def dumps_blob(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False)


def loads_blob(raw: Optional[str], *, path: str = "") -> Any:
    """Decode a stored JSON blob; malformed content raises StorageError."""
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise StorageError(f"Malformed JSON blob: {exc}", path=path, operation="read") from exc
