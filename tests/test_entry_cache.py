from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta

import pytest

from pytrackfit.cache import EntryCache
from pytrackfit.exceptions import StorageFault
from pytrackfit.models import EntryKind, SyncState, TrackingEntry, encode_entry
from pytrackfit.storage import MemoryStore


class _BrokenStore(MemoryStore):
    def __init__(self) -> None:
        super().__init__()
        self.fail = True

    async def get(self, key: str) -> bytes | None:
        if self.fail:
            raise StorageFault("disk unavailable", key=key)
        return await super().get(key)

    async def set(self, key: str, value: bytes) -> None:
        if self.fail:
            raise StorageFault("disk unavailable", key=key)
        await super().set(key, value)

    async def list_keys(self, prefix: str = "") -> list[str]:
        if self.fail:
            raise StorageFault("disk unavailable")
        return await super().list_keys(prefix)


def _entry(n: int) -> TrackingEntry:
    return TrackingEntry(
        id=f"e{n}",
        kind=EntryKind.SCAN,
        subject_id=f"F{n}",
        timestamp=datetime(2026, 1, 1, tzinfo=UTC) + timedelta(minutes=n),
    )


@pytest.mark.asyncio
async def test_put_writes_through_and_get_reads_back() -> None:
    store = MemoryStore()
    cache = EntryCache(store)

    assert await cache.put(_entry(1))

    assert "tracking_e1" in store
    assert await EntryCache(store).get("e1") == _entry(1)


@pytest.mark.asyncio
async def test_put_overwrites_state() -> None:
    cache = EntryCache(MemoryStore())
    await cache.put(_entry(1))

    await cache.put(_entry(1).with_sync_state(SyncState.SYNCED))

    fetched = await cache.get("e1")
    assert fetched is not None
    assert fetched.sync_state is SyncState.SYNCED


@pytest.mark.asyncio
async def test_storage_fault_on_put_is_logged_not_raised(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.WARNING, logger="pytrackfit")
    cache = EntryCache(_BrokenStore())

    assert await cache.put(_entry(1)) is False

    assert await cache.get("e1") == _entry(1)
    assert [e.id for e in await cache.list_all()] == ["e1"]
    assert "Storage fault" in caplog.text


@pytest.mark.asyncio
async def test_unreadable_or_mismatched_entries_are_ignored() -> None:
    store = MemoryStore({"tracking_bad": b"{", "tracking_e9": encode_entry(_entry(1))})
    cache = EntryCache(store)

    assert await cache.get("bad") is None
    assert await cache.get("e9") is None
    assert await cache.list_all() == []


@pytest.mark.asyncio
async def test_list_all_is_newest_first_and_reiterable() -> None:
    store = MemoryStore({f"tracking_e{n}": encode_entry(_entry(n)) for n in (2, 1, 3)})
    cache = EntryCache(store)

    listed = await cache.list_all()

    assert [e.id for e in listed] == ["e3", "e2", "e1"]
    assert [e.id for e in listed] == [e.id for e in listed]
    assert await cache.list_all() == listed


@pytest.mark.asyncio
async def test_clear_removes_persisted_entries() -> None:
    store = MemoryStore({"tracking_e1": encode_entry(_entry(1)), "authToken": b"tok"})
    cache = EntryCache(store)
    await cache.put(_entry(2))

    assert await cache.clear() == 2

    assert await store.list_keys("tracking_") == []
    assert "authToken" in store
    assert len(cache) == 0


@pytest.mark.asyncio
async def test_strict_get_tells_outage_from_absence() -> None:
    store = _BrokenStore()
    cache = EntryCache(store)

    assert await cache.get("e1") is None
    with pytest.raises(StorageFault):
        await cache.get("e1", strict=True)

    store.fail = False
    await store.set("tracking_e1", encode_entry(_entry(1)))
    assert (await cache.get("e1", strict=True)).id == "e1"
    assert await cache.get("e2", strict=True) is None
