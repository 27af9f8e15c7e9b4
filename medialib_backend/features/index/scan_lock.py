"""
Per-site scan lock stored next to the index.

The lock blob `{locked, timestamp}` is the only cross-process guard against
two scans of the same site. A lock older than the stale threshold belongs to
a crashed scan and is cleared on the next acquisition attempt.
"""
from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from ...adapters.storage.base import BlobStore, StorageError
from ...config import SCAN_LOCK_STALE_SECONDS
from ...path_utils import SiteRef, scan_lock_path
from ...shared import ErrorCode, Result, get_logger, log_structured, ms

logger = get_logger(__name__)


class ScanAlreadyInProgress(RuntimeError):
    """A fresh lock is held by another scan. Not a failure of this scan."""

    def __init__(self, site: SiteRef, age_ms: int):
        super().__init__(f"Scan already in progress for {site.key} (lock age {age_ms} ms)")
        self.site = site
        self.age_ms = age_ms


class ScanLockError(RuntimeError):
    """Reading, writing or removing the lock blob failed."""

    def __init__(self, message: str, stage: str = "acquire"):
        super().__init__(message)
        self.stage = stage


class ScanLockManager:
    def __init__(self, store: BlobStore, stale_after_seconds: float = SCAN_LOCK_STALE_SECONDS):
        self._store = store
        self._stale_after_ms = int(float(stale_after_seconds) * 1000)
        # Serializes check-then-write within this process; the blob guards across processes.
        self._acquire_lock = asyncio.Lock()

    async def _read_lock(self, site: SiteRef) -> dict[str, Any]:
        data = await self._store.read_json(scan_lock_path(site))
        if not isinstance(data, dict):
            return {"exists": False, "locked": False, "timestamp": None, "ageMs": None}
        timestamp = _coerce_ms(data.get("timestamp"))
        age = None if timestamp is None else max(0, ms() - timestamp)
        return {"exists": True, "locked": bool(data.get("locked")), "timestamp": timestamp, "ageMs": age}

    async def inspect(self, site: SiteRef) -> dict[str, Any]:
        """
        Describe the current lock without touching it.

        Returns:
            `{exists, locked, timestamp, ageMs}`; a missing or unreadable lock
            reads as not existing.
        """
        try:
            return await self._read_lock(site)
        except StorageError as exc:
            logger.debug("Scan lock unreadable for %s: %s", site.key, exc)
            return {"exists": False, "locked": False, "timestamp": None, "ageMs": None}

    def is_stale(self, lock: dict[str, Any]) -> bool:
        age = lock.get("ageMs")
        return age is None or int(age) > self._stale_after_ms

    async def acquire(self, site: SiteRef) -> Result[None]:
        """
        Take the lock for `site`.

        Fails with SCAN_IN_PROGRESS while a fresh lock exists and with
        LOCK_ERROR when the lock blob cannot be read or written.
        """
        async with self._acquire_lock:
            return await self._acquire(site)

    async def _acquire(self, site: SiteRef) -> Result[None]:
        try:
            lock = await self._read_lock(site)
        except StorageError as exc:
            logger.error("Failed to read scan lock for %s: %s", site.key, exc)
            return Result.Err(ErrorCode.LOCK_ERROR, f"Failed to read scan lock: {exc}")
        if lock["exists"] and lock["locked"]:
            if not self.is_stale(lock):
                log_structured(logger, logging.INFO, "Scan lock held by another scan", site=site.key, age_ms=lock["ageMs"])
                return Result.Err(ErrorCode.SCAN_IN_PROGRESS, "Scan already in progress", age_ms=lock["ageMs"])
            log_structured(logger, logging.WARNING, "Clearing stale scan lock", site=site.key, age_ms=lock["ageMs"])
            try:
                await self._store.delete(scan_lock_path(site))
            except StorageError as exc:
                return Result.Err(ErrorCode.LOCK_ERROR, f"Failed to clear stale scan lock: {exc}")
        try:
            await self._store.write_json(scan_lock_path(site), {"locked": True, "timestamp": ms()})
        except StorageError as exc:
            return Result.Err(ErrorCode.LOCK_ERROR, f"Failed to create scan lock: {exc}")
        logger.debug("Scan lock acquired for %s", site.key)
        return Result.Ok(None)

    async def release(self, site: SiteRef) -> Result[None]:
        try:
            await self._store.delete(scan_lock_path(site))
        except StorageError as exc:
            logger.error("Failed to release scan lock for %s: %s", site.key, exc)
            return Result.Err(ErrorCode.LOCK_ERROR, f"Failed to release scan lock: {exc}")
        logger.debug("Scan lock released for %s", site.key)
        return Result.Ok(None)

    @asynccontextmanager
    async def hold(self, site: SiteRef) -> AsyncIterator[None]:
        """
        Hold the lock for the body of an `async with` block.

        Raises:
            ScanAlreadyInProgress: a fresh lock exists
            ScanLockError: the lock could not be read, written or removed.
                A failed release raises only when the body itself succeeded;
                otherwise the body's exception propagates unchanged.
        """
        acquired = await self.acquire(site)
        if acquired.is_code(ErrorCode.SCAN_IN_PROGRESS):
            raise ScanAlreadyInProgress(site, int(acquired.meta.get("age_ms") or 0))
        if not acquired.ok:
            raise ScanLockError(acquired.error or "Scan lock unavailable")
        try:
            yield
        except BaseException:
            await self.release(site)
            raise
        released = await self.release(site)
        if not released.ok:
            raise ScanLockError(released.error or "Failed to release scan lock", stage="release")


def _coerce_ms(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
