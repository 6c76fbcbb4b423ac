from __future__ import annotations

from pathlib import Path

import pytest

from pytrackfit.exceptions import StorageFault
from pytrackfit.storage import FileStore, MemoryStore


@pytest.mark.asyncio
async def test_memory_store_basic_operations() -> None:
    store = MemoryStore()

    await store.set("tracking_b", b"2")
    await store.set("tracking_a", b"1")
    await store.set("sync_queue", b"[]")

    assert await store.get("tracking_a") == b"1"
    assert await store.get("missing") is None
    assert await store.list_keys("tracking_") == ["tracking_a", "tracking_b"]

    await store.remove("tracking_a")
    await store.remove("tracking_a")
    assert "tracking_a" not in store
    assert len(store) == 2


@pytest.mark.asyncio
async def test_file_store_survives_new_instance(tmp_path: Path) -> None:
    first = FileStore(tmp_path / "kv")
    await first.set("tracking_track_1_ab/cd", b'{"id":"x"}')
    await first.set("authToken", b"tok")

    second = FileStore(tmp_path / "kv")

    assert await second.get("tracking_track_1_ab/cd") == b'{"id":"x"}'
    assert await second.list_keys() == ["authToken", "tracking_track_1_ab/cd"]
    assert not list((tmp_path / "kv").glob(".tmp-*"))


@pytest.mark.asyncio
async def test_file_store_overwrite_and_remove(tmp_path: Path) -> None:
    store = FileStore(tmp_path)

    await store.set("k", b"old")
    await store.set("k", b"new")
    assert await store.get("k") == b"new"

    await store.remove("k")
    await store.remove("k")
    assert await store.get("k") is None


@pytest.mark.asyncio
async def test_file_store_lists_nothing_before_first_write(tmp_path: Path) -> None:
    store = FileStore(tmp_path / "not-yet")

    assert await store.list_keys("tracking_") == []
    assert await store.get("tracking_x") is None


@pytest.mark.asyncio
async def test_file_store_wraps_os_errors(tmp_path: Path) -> None:
    blocker = tmp_path / "file"
    blocker.write_bytes(b"")
    store = FileStore(blocker / "sub")

    with pytest.raises(StorageFault) as exc_info:
        await store.set("k", b"v")

    assert exc_info.value.key == "k"
