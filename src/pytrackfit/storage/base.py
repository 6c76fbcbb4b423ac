"""Key-value store interface and the in-memory implementation."""

from __future__ import annotations

from typing import Protocol


class KeyValueStore(Protocol):
    """Durable, process-wide, string-keyed byte store.

    Implementations raise :class:`~pytrackfit.exceptions.StorageFault`
    when the backing medium is unavailable. Callers in the core catch it
    and degrade to in-memory operation.
    """

    async def get(self, key: str) -> bytes | None:
        ...

    async def set(self, key: str, value: bytes) -> None:
        ...

    async def remove(self, key: str) -> None:
        ...

    async def list_keys(self, prefix: str = "") -> list[str]:
        ...


class MemoryStore:
    """Dict-backed store; contents live as long as the process."""

    def __init__(self, initial: dict[str, bytes] | None = None) -> None:
        self._data: dict[str, bytes] = dict(initial or {})

    async def get(self, key: str) -> bytes | None:
        return self._data.get(key)

    async def set(self, key: str, value: bytes) -> None:
        self._data[key] = bytes(value)

    async def remove(self, key: str) -> None:
        self._data.pop(key, None)

    async def list_keys(self, prefix: str = "") -> list[str]:
        return sorted(key for key in self._data if key.startswith(prefix))

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: object) -> bool:
        return key in self._data
