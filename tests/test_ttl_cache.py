from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest

from pytrackfit.cache import TtlCache
from pytrackfit.storage import MemoryStore


class _Clock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.mark.asyncio
async def test_value_is_served_until_ttl_elapses() -> None:
    clock = _Clock()
    cache = TtlCache(clock=clock)
    calls: list[float] = []

    def compute() -> dict[str, int]:
        calls.append(clock.now)
        return {"total": len(calls)}

    assert await cache.get_or_compute("dashboard", 5, compute) == {"total": 1}
    clock.now = 1004.999
    assert await cache.get_or_compute("dashboard", 5, compute) == {"total": 1}
    clock.now = 1005.001
    assert await cache.get_or_compute("dashboard", 5, compute) == {"total": 2}
    assert calls == [1000.0, 1005.001]


@pytest.mark.asyncio
async def test_concurrent_callers_share_one_computation() -> None:
    cache = TtlCache(clock=_Clock())
    gate = asyncio.Event()
    calls = 0

    async def compute() -> dict[str, int]:
        nonlocal calls
        calls += 1
        await gate.wait()
        return {"total": 7}

    first = asyncio.create_task(cache.get_or_compute("dashboard", 300, compute))
    second = asyncio.create_task(cache.get_or_compute("dashboard", 300, compute))
    await asyncio.sleep(0)
    await asyncio.sleep(0)
    assert cache.is_computing("dashboard")

    gate.set()
    results = await asyncio.gather(first, second)

    assert calls == 1
    assert results == [{"total": 7}, {"total": 7}]
    assert not cache.is_computing("dashboard")


@pytest.mark.asyncio
async def test_failed_computation_is_not_cached() -> None:
    clock = _Clock()
    cache = TtlCache(clock=clock)
    await cache.get_or_compute("k", timedelta(seconds=5), lambda: "old")
    clock.now += 10

    def broken() -> str:
        raise RuntimeError("backend down")

    with pytest.raises(RuntimeError, match="backend down"):
        await cache.get_or_compute("k", 5, broken)

    stale = cache.peek("k")
    assert stale is not None
    assert stale.value == "old"
    assert await cache.get_or_compute("k", 5, lambda: "new") == "new"


@pytest.mark.asyncio
async def test_invalidate_during_computation_keeps_result_out() -> None:
    cache = TtlCache(clock=_Clock())
    gate = asyncio.Event()

    async def compute() -> int:
        await gate.wait()
        return 1

    task = asyncio.create_task(cache.get_or_compute("k", 60, compute))
    await asyncio.sleep(0)
    await cache.invalidate("k")
    gate.set()

    assert await task == 1
    assert cache.peek("k") is None
    assert await cache.get_or_compute("k", 60, lambda: 2) == 2


@pytest.mark.asyncio
async def test_persisted_entries_survive_a_new_cache() -> None:
    clock = _Clock()
    store = MemoryStore()
    await TtlCache(store=store, clock=clock).get_or_compute("dashboard", 300, lambda: {"total": 3})

    def unexpected() -> dict[str, int]:
        raise AssertionError("should have been served from the store")

    restored = TtlCache(store=store, clock=clock)
    assert await restored.get_or_compute("dashboard", 300, unexpected) == {"total": 3}

    await restored.clear()
    assert await store.list_keys("cache_") == []


@pytest.mark.asyncio
async def test_zero_ttl_always_recomputes_and_negative_is_rejected() -> None:
    cache = TtlCache(clock=_Clock())
    counter = iter(range(10))

    assert await cache.get_or_compute("k", 0, lambda: next(counter)) == 0
    assert await cache.get_or_compute("k", 0, lambda: next(counter)) == 1
    with pytest.raises(ValueError):
        await cache.get_or_compute("k", -1, lambda: 0)
