"""Durable FIFO of entries awaiting upload.

The queue stores identifiers and per-endpoint outcomes only. Its whole
membership is persisted under one store key after every mutation so a
restart does not lose pending work.

An item leaves the queue through :meth:`SyncQueue.settle` (every
required endpoint has a recorded success) or through an explicit user
action (:meth:`SyncQueue.discard`, :meth:`SyncQueue.clear`).
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Iterable

import pydantic

from pytrackfit._constants import QUEUE_KEY
from pytrackfit.exceptions import StorageFault
from pytrackfit.models.entry import TrackingEntry
from pytrackfit.models.queue import EndpointOutcome, ErrorKind, QueueItem, QueueSnapshot
from pytrackfit.storage.base import KeyValueStore

_logger = logging.getLogger(__name__)


class SyncQueue:
    """Pending-upload list with per-(entry, endpoint) outcome tracking."""

    def __init__(
        self,
        store: KeyValueStore,
        *,
        required_endpoints: Iterable[str],
        clock: Callable[[], float] = time.time,
        key: str = QUEUE_KEY,
    ) -> None:
        self._store = store
        self._required = tuple(required_endpoints)
        if not self._required:
            raise ValueError("required_endpoints must not be empty")
        self._clock = clock
        self._key = key
        # dicts keep insertion order, which is capture order.
        self._items: dict[str, QueueItem] = {}
        self._lock = asyncio.Lock()

    @property
    def required_endpoints(self) -> tuple[str, ...]:
        return self._required

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, entry_id: object) -> bool:
        return entry_id in self._items

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    async def load(self) -> int:
        """Restore membership from the store; returns the number of restored items.

        Items already enqueued in this process are kept after the
        restored ones.
        """
        try:
            raw = await self._store.get(self._key)
        except (StorageFault, OSError) as exc:
            _logger.warning("Storage fault while loading sync queue, starting empty: %s", exc)
            return 0
        if raw is None:
            return 0
        try:
            snapshot = QueueSnapshot.model_validate_json(raw)
        except pydantic.ValidationError:
            _logger.warning("Sync queue snapshot is unreadable, starting empty", exc_info=True)
            return 0

        async with self._lock:
            restored: dict[str, QueueItem] = {}
            for item in snapshot.items:
                restored.setdefault(item.entry_id, item)
            for entry_id, item in self._items.items():
                restored.setdefault(entry_id, item)
            self._items = restored
            _logger.debug("Restored %d queued entries", len(snapshot.items))
            return len(snapshot.items)

    async def _persist(self) -> bool:
        snapshot = QueueSnapshot(items=list(self._items.values()))
        try:
            await self._store.set(self._key, snapshot.model_dump_json(by_alias=True).encode("utf-8"))
        except (StorageFault, OSError) as exc:
            _logger.warning("Storage fault while saving sync queue (%d items kept in memory): %s", len(self._items), exc)
            return False
        return True

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------

    async def enqueue(self, entry: TrackingEntry | str) -> bool:
        """Append an entry reference; returns ``False`` if it was already queued."""
        entry_id = entry if isinstance(entry, str) else entry.id
        async with self._lock:
            if entry_id in self._items:
                return False
            self._items[entry_id] = QueueItem(entry_id=entry_id, enqueued_at=self._clock())
            await self._persist()
            return True

    async def dequeue_batch(self, max_size: int, now: float | None = None) -> list[QueueItem]:
        """Return up to *max_size* due, non-terminal items in FIFO order.

        Nothing is removed; items are copies.
        """
        if max_size < 1:
            return []
        current = self._clock() if now is None else now
        batch: list[QueueItem] = []
        for item in self._items.values():
            if item.is_due(current):
                batch.append(item.model_copy(deep=True))
                if len(batch) >= max_size:
                    break
        return batch

    def get(self, entry_id: str) -> QueueItem | None:
        item = self._items.get(entry_id)
        return item.model_copy(deep=True) if item is not None else None

    def items(self) -> list[QueueItem]:
        return [item.model_copy(deep=True) for item in self._items.values()]

    def has_due(self, now: float | None = None) -> bool:
        current = self._clock() if now is None else now
        return any(item.is_due(current) for item in self._items.values())

    def next_due_at(self) -> float | None:
        """Earliest ``next_attempt_at`` among non-terminal items."""
        times = [item.next_attempt_at for item in self._items.values() if not item.terminal]
        return min(times) if times else None

    # ------------------------------------------------------------------
    # Outcomes
    # ------------------------------------------------------------------

    async def mark_result(
        self,
        entry_id: str,
        endpoint: str,
        success: bool,
        *,
        server_id: str | None = None,
        error: str | None = None,
        error_kind: ErrorKind | None = None,
    ) -> QueueItem | None:
        """Record the outcome of one upload attempt.

        A recorded success is never downgraded by a later failure.
        Returns ``None`` if the entry is no longer queued.
        """
        async with self._lock:
            item = self._items.get(entry_id)
            if item is None:
                return None
            outcome = item.outcomes.setdefault(endpoint, EndpointOutcome())
            outcome.attempts += 1
            outcome.updated_at = self._clock()
            if success:
                outcome.success = True
                outcome.server_id = server_id
                outcome.error = None
                outcome.error_kind = None
            elif not outcome.success:
                outcome.error = error
                outcome.error_kind = error_kind
            await self._persist()
            return item.model_copy(deep=True)

    def is_complete(self, entry_id: str) -> bool:
        item = self._items.get(entry_id)
        return item is not None and item.all_succeeded(self._required)

    async def settle(self, entry_id: str) -> bool:
        """Remove the item if every required endpoint has succeeded."""
        async with self._lock:
            item = self._items.get(entry_id)
            if item is None or not item.all_succeeded(self._required):
                return False
            del self._items[entry_id]
            await self._persist()
            return True

    async def schedule_retry(
        self,
        entry_id: str,
        delay: float,
        *,
        error: str | None = None,
        error_kind: ErrorKind | None = None,
        count_attempt: bool = True,
    ) -> QueueItem | None:
        """Count a failed attempt and hold the item back for *delay* seconds."""
        async with self._lock:
            item = self._items.get(entry_id)
            if item is None:
                return None
            if count_attempt:
                item.attempts += 1
            item.next_attempt_at = self._clock() + max(0.0, delay)
            item.last_error = error
            item.error_kind = error_kind
            await self._persist()
            return item.model_copy(deep=True)

    async def mark_terminal(
        self,
        entry_id: str,
        *,
        error: str | None = None,
        error_kind: ErrorKind | None = None,
        count_attempt: bool = True,
    ) -> QueueItem | None:
        """Stop retrying an item; it stays queued until reset or discarded."""
        async with self._lock:
            item = self._items.get(entry_id)
            if item is None:
                return None
            if count_attempt:
                item.attempts += 1
            item.terminal = True
            item.last_error = error
            item.error_kind = error_kind
            await self._persist()
            return item.model_copy(deep=True)

    async def reset(self, entry_id: str) -> bool:
        """Make a failed item eligible again (manual retry).

        Successful endpoint outcomes are kept so they are not uploaded twice.
        """
        async with self._lock:
            item = self._items.get(entry_id)
            if item is None:
                return False
            item.terminal = False
            item.attempts = 0
            item.next_attempt_at = 0.0
            item.last_error = None
            item.error_kind = None
            item.outcomes = {name: outcome for name, outcome in item.outcomes.items() if outcome.success}
            await self._persist()
            return True

    async def discard(self, entry_id: str) -> bool:
        async with self._lock:
            if self._items.pop(entry_id, None) is None:
                return False
            await self._persist()
            return True

    async def clear(self) -> int:
        async with self._lock:
            count = len(self._items)
            self._items.clear()
            try:
                await self._store.remove(self._key)
            except (StorageFault, OSError) as exc:
                _logger.warning("Storage fault while clearing sync queue: %s", exc)
            return count
