import asyncio

import pytest

from medialib_backend.adapters.storage import MemoryBlobStore, StorageError
from medialib_backend.features.index import scan_lock as sl
from medialib_backend.path_utils import scan_lock_path
from medialib_backend.shared import ErrorCode


class _FailingWrites(MemoryBlobStore):
    async def write_json(self, path, data):
        raise StorageError("disk full", path=path, operation="write")


class _UnreadableLock(MemoryBlobStore):
    async def read_json(self, path):
        if path.endswith("/scan-lock.json"):
            raise StorageError("connection reset", path=path, operation="read")
        return await super().read_json(path)


class _FailingDeletes(MemoryBlobStore):
    async def delete(self, path):
        raise StorageError("permission denied", path=path, operation="delete")


class _SlowReads(MemoryBlobStore):
    async def read_json(self, path):
        await asyncio.sleep(0.001)
        return await super().read_json(path)


@pytest.mark.asyncio
async def test_acquire_creates_lock_and_release_removes_it(store, site) -> None:
    locks = sl.ScanLockManager(store)
    assert (await locks.acquire(site)).ok
    state = await locks.inspect(site)
    assert state["exists"] and state["locked"]
    assert state["ageMs"] is not None and state["ageMs"] >= 0

    assert (await locks.release(site)).ok
    assert (await locks.inspect(site))["exists"] is False


@pytest.mark.asyncio
async def test_fresh_lock_blocks_second_acquire(store, site) -> None:
    locks = sl.ScanLockManager(store)
    assert (await locks.acquire(site)).ok
    second = await locks.acquire(site)
    assert second.is_code(ErrorCode.SCAN_IN_PROGRESS)


@pytest.mark.asyncio
async def test_stale_lock_is_cleared(store, site, monkeypatch) -> None:
    locks = sl.ScanLockManager(store, stale_after_seconds=60)
    assert (await locks.acquire(site)).ok
    lock = await store.read_json(scan_lock_path(site))
    monkeypatch.setattr(sl, "ms", lambda: lock["timestamp"] + 61_000)
    assert (await locks.acquire(site)).ok


@pytest.mark.asyncio
@pytest.mark.parametrize("store_cls", [MemoryBlobStore, _SlowReads])
async def test_concurrent_acquires_admit_one(site, store_cls) -> None:
    store = store_cls()
    locks = sl.ScanLockManager(store)

    async def attempt():
        try:
            async with locks.hold(site):
                await asyncio.sleep(0.1)
                return True
        except sl.ScanAlreadyInProgress:
            return False

    results = await asyncio.gather(*(attempt() for _ in range(5)))
    assert results.count(True) == 1
    assert (await locks.inspect(site))["exists"] is False


@pytest.mark.asyncio
async def test_hold_releases_on_exception(store, site) -> None:
    locks = sl.ScanLockManager(store)
    with pytest.raises(RuntimeError):
        async with locks.hold(site):
            raise RuntimeError("boom")
    assert (await locks.inspect(site))["exists"] is False


@pytest.mark.asyncio
async def test_lock_write_failure_is_lock_error(site) -> None:
    locks = sl.ScanLockManager(_FailingWrites())
    res = await locks.acquire(site)
    assert res.is_code(ErrorCode.LOCK_ERROR)
    with pytest.raises(sl.ScanLockError):
        async with locks.hold(site):
            pass


@pytest.mark.asyncio
async def test_unlocked_blob_does_not_block(store, site) -> None:
    await store.write_json(scan_lock_path(site), {"locked": False, "timestamp": 1})
    assert (await sl.ScanLockManager(store).acquire(site)).ok


@pytest.mark.asyncio
async def test_concurrent_acquires_admit_one_on_sqlite(sqlite_store, site) -> None:
    locks = sl.ScanLockManager(sqlite_store)
    results = await asyncio.gather(*(locks.acquire(site) for _ in range(5)))
    assert [r.ok for r in results].count(True) == 1
    assert all(r.is_code(ErrorCode.SCAN_IN_PROGRESS) for r in results if not r.ok)


@pytest.mark.asyncio
async def test_unreadable_lock_is_lock_error_and_left_untouched(site) -> None:
    store = _UnreadableLock()
    held = {"locked": True, "timestamp": 1_700_000_000_000}
    await store.write_json(scan_lock_path(site), held)
    locks = sl.ScanLockManager(store)

    res = await locks.acquire(site)
    assert res.is_code(ErrorCode.LOCK_ERROR)
    assert await MemoryBlobStore.read_json(store, scan_lock_path(site)) == held
    with pytest.raises(sl.ScanLockError):
        async with locks.hold(site):
            pytest.fail("body must not run without the lock")
    assert (await locks.inspect(site))["exists"] is False


@pytest.mark.asyncio
async def test_failed_release_raises_after_successful_body(site) -> None:
    locks = sl.ScanLockManager(_FailingDeletes())
    ran = []
    with pytest.raises(sl.ScanLockError) as excinfo:
        async with locks.hold(site):
            ran.append(True)
    assert ran == [True]
    assert excinfo.value.stage == "release"


@pytest.mark.asyncio
async def test_failed_release_does_not_mask_body_error(site) -> None:
    locks = sl.ScanLockManager(_FailingDeletes())
    with pytest.raises(ValueError, match="body failed"):
        async with locks.hold(site):
            raise ValueError("body failed")
