"""
SQLite-backed blob store (aiosqlite).

One table keyed by path. SQLite's file locking makes the store safe to share
between processes, which is what the scan lock relies on.
"""
from __future__ import annotations

import asyncio
import sqlite3
from pathlib import Path
from typing import Any, Optional

import aiosqlite

from ...shared import get_logger, ms
from .base import StorageError, dumps_blob, loads_blob

logger = get_logger(__name__)

SQLITE_BUSY_TIMEOUT_MS = 5000

_SCHEMA = """
CREATE TABLE IF NOT EXISTS blobs (
    path TEXT PRIMARY KEY,
    content TEXT NOT NULL,
    updated_ms INTEGER NOT NULL
)
"""


class SqliteBlobStore:
    def __init__(self, db_path: str | Path, timeout: float = 30.0):
        self.db_path = str(db_path)
        self._timeout = timeout
        self._conn: Optional[aiosqlite.Connection] = None
        self._lock = asyncio.Lock()

    async def _apply_connection_pragmas(self, conn: aiosqlite.Connection) -> None:
        await conn.execute("PRAGMA journal_mode=WAL")
        await conn.execute("PRAGMA synchronous=NORMAL")
        await conn.execute(f"PRAGMA busy_timeout = {SQLITE_BUSY_TIMEOUT_MS}")

    async def _connection(self) -> aiosqlite.Connection:
        if self._conn is not None:
            return self._conn
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        conn = await aiosqlite.connect(self.db_path, timeout=self._timeout, isolation_level=None)
        conn.row_factory = sqlite3.Row
        await self._apply_connection_pragmas(conn)
        await conn.execute(_SCHEMA)
        self._conn = conn
        return conn

    async def _fetch_row(self, path: str, operation: str) -> Optional[sqlite3.Row]:
        async with self._lock:
            try:
                conn = await self._connection()
                async with conn.execute("SELECT content, updated_ms FROM blobs WHERE path = ?", (path,)) as cursor:
                    return await cursor.fetchone()
            except (sqlite3.Error, OSError) as exc:
                raise StorageError(f"SQLite {operation} failed: {exc}", path=path, operation=operation) from exc

    async def read_text(self, path: str) -> Optional[str]:
        row = await self._fetch_row(path, "read")
        return None if row is None else str(row["content"])

    async def read_json(self, path: str) -> Any:
        return loads_blob(await self.read_text(path), path=path)

    async def last_modified(self, path: str) -> Optional[int]:
        row = await self._fetch_row(path, "stat")
        return None if row is None else int(row["updated_ms"])

    async def list_paths(self, prefix: str) -> list[str]:
        async with self._lock:
            try:
                conn = await self._connection()
                async with conn.execute(
                    "SELECT path FROM blobs WHERE substr(path, 1, ?) = ? ORDER BY path",
                    (len(prefix), prefix),
                ) as cursor:
                    rows = await cursor.fetchall()
            except (sqlite3.Error, OSError) as exc:
                raise StorageError(f"SQLite list failed: {exc}", path=prefix, operation="list") from exc
        return [str(row["path"]) for row in rows]

    async def write_text(self, path: str, text: str) -> None:
        async with self._lock:
            try:
                conn = await self._connection()
                await conn.execute(
                    "INSERT OR REPLACE INTO blobs (path, content, updated_ms) VALUES (?, ?, ?)",
                    (path, text, ms()),
                )
            except (sqlite3.Error, OSError) as exc:
                raise StorageError(f"SQLite write failed: {exc}", path=path, operation="write") from exc

    async def write_json(self, path: str, data: Any) -> None:
        await self.write_text(path, dumps_blob(data))

    async def delete(self, path: str) -> None:
        async with self._lock:
            try:
                conn = await self._connection()
                await conn.execute("DELETE FROM blobs WHERE path = ?", (path,))
            except (sqlite3.Error, OSError) as exc:
                raise StorageError(f"SQLite delete failed: {exc}", path=path, operation="delete") from exc

    async def aclose(self) -> None:
        async with self._lock:
            conn, self._conn = self._conn, None
        if conn is not None:
            try:
                await conn.close()
            except Exception:
                logger.debug("Closing blob store connection failed", exc_info=True)
