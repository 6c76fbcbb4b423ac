"""In-memory index over tracking entries held in the key-value store.

The store owns the durable bytes; this index is a rebuildable view that
saves repeated store reads. Storage faults are logged and swallowed,
except by a strict :meth:`EntryCache.get`.
"""

from __future__ import annotations

import asyncio
import logging

from pytrackfit._constants import ENTRY_KEY_PREFIX
from pytrackfit.exceptions import StorageFault, ValidationError
from pytrackfit.models.entry import TrackingEntry, decode_entry, encode_entry
from pytrackfit.storage.base import KeyValueStore

_logger = logging.getLogger(__name__)


class EntryCache:
    """Tracking entries by id, backed by a :class:`KeyValueStore`."""

    def __init__(self, store: KeyValueStore, *, key_prefix: str = ENTRY_KEY_PREFIX) -> None:
        self._store = store
        self._prefix = key_prefix
        self._entries: dict[str, TrackingEntry] = {}
        self._indexed = False
        self._lock = asyncio.Lock()

    def _key(self, entry_id: str) -> str:
        return f"{self._prefix}{entry_id}"

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, entry_id: object) -> bool:
        return entry_id in self._entries

    async def put(self, entry: TrackingEntry) -> bool:
        """Store or overwrite *entry* and write it through to the store.

        Returns ``False`` when the durable write failed; the entry is
        still held in memory.
        """
        async with self._lock:
            self._entries[entry.id] = entry
            return await self._persist(entry)

    async def _persist(self, entry: TrackingEntry) -> bool:
        try:
            await self._store.set(self._key(entry.id), encode_entry(entry))
        except (StorageFault, OSError) as exc:
            _logger.warning("Storage fault while saving entry %s, keeping it in memory only: %s", entry.id, exc)
            return False
        return True

    async def _read(self, entry_id: str, *, strict: bool = False) -> TrackingEntry | None:
        key = self._key(entry_id)
        try:
            raw = await self._store.get(key)
        except (StorageFault, OSError) as exc:
            _logger.warning("Storage fault while reading entry %s: %s", entry_id, exc)
            if not strict:
                return None
            if isinstance(exc, StorageFault):
                raise
            raise StorageFault(f"Cannot read {key!r}: {exc}", key=key) from exc
        if raw is None:
            return None
        try:
            entry = decode_entry(raw)
        except ValidationError as exc:
            _logger.warning("Discarding unreadable entry %s: %s", entry_id, exc)
            return None
        if entry.id != entry_id:
            _logger.warning("Entry stored under %s carries id %s; ignoring it", entry_id, entry.id)
            return None
        return entry

    async def get(self, entry_id: str, *, strict: bool = False) -> TrackingEntry | None:
        """Return the entry, reading through to the store on a miss.

        ``None`` means the entry is absent or unreadable. With *strict*, a
        store that cannot be read raises :class:`StorageFault` instead, so
        callers can tell an outage from a missing entry.
        """
        entry = self._entries.get(entry_id)
        if entry is not None:
            return entry
        loaded = await self._read(entry_id, strict=strict)
        if loaded is None:
            return None
        async with self._lock:
            # A put() that raced the read wins.
            return self._entries.setdefault(entry_id, loaded)

    async def _ensure_indexed(self) -> None:
        if self._indexed:
            return
        async with self._lock:
            if self._indexed:
                return
            try:
                keys = await self._store.list_keys(self._prefix)
            except (StorageFault, OSError) as exc:
                _logger.warning("Storage fault while listing entries, serving in-memory view: %s", exc)
                return
            for key in keys:
                entry_id = key[len(self._prefix) :]
                if entry_id in self._entries:
                    continue
                entry = await self._read(entry_id)
                if entry is not None:
                    self._entries[entry_id] = entry
            self._indexed = True

    async def list_all(self) -> list[TrackingEntry]:
        """All known entries, newest first.

        Each call returns a fresh list, so callers may iterate it as often
        as they like without touching the store again.
        """
        await self._ensure_indexed()
        return sorted(self._entries.values(), key=lambda e: e.timestamp, reverse=True)

    async def remove(self, entry_id: str) -> None:
        async with self._lock:
            self._entries.pop(entry_id, None)
            try:
                await self._store.remove(self._key(entry_id))
            except (StorageFault, OSError) as exc:
                _logger.warning("Storage fault while removing entry %s: %s", entry_id, exc)

    async def clear(self) -> int:
        """Remove every entry from memory and the store; return how many were known."""
        await self._ensure_indexed()
        async with self._lock:
            ids = set(self._entries)
            try:
                ids.update(key[len(self._prefix) :] for key in await self._store.list_keys(self._prefix))
            except (StorageFault, OSError) as exc:
                _logger.warning("Storage fault while listing entries for clear: %s", exc)
            for entry_id in ids:
                try:
                    await self._store.remove(self._key(entry_id))
                except (StorageFault, OSError) as exc:
                    _logger.warning("Storage fault while removing entry %s: %s", entry_id, exc)
            self._entries.clear()
            return len(ids)
