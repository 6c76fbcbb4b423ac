"""Time-bounded memoization with single-flight computation.

``get_or_compute`` serves a value while ``now - stored_at < ttl`` and
otherwise recomputes it. Callers that arrive while a computation for
the same key is running await that computation instead of starting
another one. A failed computation is never cached.
"""

from __future__ import annotations

import asyncio
import functools
import inspect
import logging
import time
from collections.abc import Awaitable, Callable
from datetime import timedelta
from typing import Any, TypeVar

import pydantic

from pytrackfit._constants import CACHE_KEY_PREFIX
from pytrackfit.exceptions import StorageFault
from pytrackfit.models.cache import CacheEntry
from pytrackfit.storage.base import KeyValueStore

_logger = logging.getLogger(__name__)

T = TypeVar("T")

Compute = Callable[[], Awaitable[T] | T]


def _ttl_seconds(ttl: float | timedelta) -> float:
    seconds = ttl.total_seconds() if isinstance(ttl, timedelta) else float(ttl)
    if seconds < 0:
        raise ValueError(f"ttl must be >= 0, got {seconds}")
    return seconds


class TtlCache:
    """Keyed TTL cache.

    Parameters
    ----------
    store : KeyValueStore or None
        Optional durable backing. Values must then be JSON-serializable;
        persisted entries survive a restart until their TTL runs out.
    clock : callable
        Wall-clock source in epoch seconds.
    """

    def __init__(
        self,
        *,
        store: KeyValueStore | None = None,
        clock: Callable[[], float] = time.time,
        key_prefix: str = CACHE_KEY_PREFIX,
    ) -> None:
        self._store = store
        self._clock = clock
        self._prefix = key_prefix
        self._entries: dict[str, CacheEntry[Any]] = {}
        self._inflight: dict[str, asyncio.Future[Any]] = {}
        self._generations: dict[str, int] = {}

    def _store_key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    async def get_or_compute(self, key: str, ttl: float | timedelta, compute: Compute[T]) -> T:
        """Return the cached value for *key* or compute, store and return it.

        *compute* may be a plain callable or return an awaitable. If it
        raises, the exception reaches the callers awaiting this
        computation and any previous entry is left untouched.
        """
        ttl_s = _ttl_seconds(ttl)

        if key not in self._entries and self._store is not None:
            loaded = await self._load(key)
            if loaded is not None and key not in self._entries:
                self._entries[key] = loaded

        entry = self._entries.get(key)
        if entry is not None and entry.is_fresh(self._clock(), ttl_s):
            return entry.value  # type: ignore[no-any-return]

        flight = self._inflight.get(key)
        if flight is None:
            generation = self._generations.get(key, 0)
            flight = asyncio.ensure_future(self._compute(key, ttl_s, compute, generation))
            self._inflight[key] = flight
            flight.add_done_callback(functools.partial(self._flight_done, key))
        else:
            _logger.debug("Joining in-flight computation for %s", key)
        return await asyncio.shield(flight)  # type: ignore[no-any-return]

    async def _compute(self, key: str, ttl: float, compute: Compute[T], generation: int) -> T:
        result = compute()
        if inspect.isawaitable(result):
            result = await result
        if self._generations.get(key, 0) != generation:
            # Invalidated while computing; hand the value to this flight's callers only.
            return result  # type: ignore[return-value]
        entry: CacheEntry[Any] = CacheEntry[Any](key=key, value=result, stored_at=self._clock(), ttl=ttl)
        self._entries[key] = entry
        await self._persist(entry)
        return result  # type: ignore[return-value]

    def _flight_done(self, key: str, flight: asyncio.Future[Any]) -> None:
        if self._inflight.get(key) is flight:
            del self._inflight[key]
        if not flight.cancelled() and flight.exception() is not None:
            _logger.debug("Computation for %s failed: %r", key, flight.exception())

    async def _load(self, key: str) -> CacheEntry[Any] | None:
        assert self._store is not None  # noqa: S101
        try:
            raw = await self._store.get(self._store_key(key))
        except (StorageFault, OSError) as exc:
            _logger.warning("Storage fault while reading cache entry %s: %s", key, exc)
            return None
        if raw is None:
            return None
        try:
            return CacheEntry[Any].model_validate_json(raw)
        except pydantic.ValidationError:
            _logger.warning("Ignoring unreadable cache entry %s", key, exc_info=True)
            return None

    async def _persist(self, entry: CacheEntry[Any]) -> None:
        if self._store is None:
            return
        try:
            await self._store.set(self._store_key(entry.key), entry.model_dump_json(by_alias=True).encode("utf-8"))
        except (StorageFault, OSError, TypeError, ValueError) as exc:
            _logger.warning("Could not persist cache entry %s: %s", entry.key, exc)

    def peek(self, key: str) -> CacheEntry[Any] | None:
        """Return the stored entry for *key*, fresh or stale, without computing."""
        return self._entries.get(key)

    def is_computing(self, key: str) -> bool:
        return key in self._inflight

    async def invalidate(self, key: str) -> None:
        """Drop *key* so the next call recomputes.

        A computation already running for *key* still answers its own
        callers but no longer populates the cache.
        """
        self._generations[key] = self._generations.get(key, 0) + 1
        self._entries.pop(key, None)
        self._inflight.pop(key, None)
        if self._store is not None:
            try:
                await self._store.remove(self._store_key(key))
            except (StorageFault, OSError) as exc:
                _logger.warning("Storage fault while removing cache entry %s: %s", key, exc)

    async def clear(self) -> None:
        keys = set(self._entries) | set(self._inflight)
        if self._store is not None:
            try:
                keys.update(key[len(self._prefix) :] for key in await self._store.list_keys(self._prefix))
            except (StorageFault, OSError) as exc:
                _logger.warning("Storage fault while listing cache entries: %s", exc)
        for key in keys:
            await self.invalidate(key)
