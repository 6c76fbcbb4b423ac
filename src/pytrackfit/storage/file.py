"""File-backed key-value store.

Each key maps to one file under the store directory. Key names are
percent-encoded so any string is a valid key. Writes go to a temporary
file first and are moved into place with ``os.replace``.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import tempfile
from pathlib import Path
from urllib.parse import quote, unquote

from pytrackfit.exceptions import StorageFault

_logger = logging.getLogger(__name__)

_SUFFIX = ".kv"


def _file_name(key: str) -> str:
    return quote(key, safe="") + _SUFFIX


def _key_name(file_name: str) -> str:
    return unquote(file_name[: -len(_SUFFIX)])


class FileStore:
    """Durable store rooted at *directory* (created on first write)."""

    def __init__(self, directory: str | os.PathLike[str]) -> None:
        self._root = Path(directory)

    @property
    def root(self) -> Path:
        return self._root

    def _path(self, key: str) -> Path:
        if not key:
            raise StorageFault("Empty store key", key=key)
        return self._root / _file_name(key)

    # Blocking helpers, executed in a worker thread.

    def _read(self, key: str) -> bytes | None:
        path = self._path(key)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StorageFault(f"Cannot read {key!r}: {exc}", key=key) from exc

    def _write(self, key: str, value: bytes) -> None:
        path = self._path(key)
        try:
            self._root.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self._root, prefix=".tmp-")
            try:
                with os.fdopen(fd, "wb") as handle:
                    handle.write(value)
                    handle.flush()
                    os.fsync(handle.fileno())
                os.replace(tmp_name, path)
            except BaseException:
                with contextlib.suppress(OSError):
                    os.unlink(tmp_name)
                raise
        except OSError as exc:
            raise StorageFault(f"Cannot write {key!r}: {exc}", key=key) from exc

    def _delete(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            raise StorageFault(f"Cannot remove {key!r}: {exc}", key=key) from exc

    def _list(self, prefix: str) -> list[str]:
        if not self._root.exists():
            return []
        try:
            names = [entry.name for entry in self._root.iterdir() if entry.name.endswith(_SUFFIX)]
        except OSError as exc:
            raise StorageFault(f"Cannot list {self._root}: {exc}") from exc
        keys = (_key_name(name) for name in names)
        return sorted(key for key in keys if key.startswith(prefix))

    # Async interface

    async def get(self, key: str) -> bytes | None:
        return await asyncio.to_thread(self._read, key)

    async def set(self, key: str, value: bytes) -> None:
        await asyncio.to_thread(self._write, key, bytes(value))
        _logger.debug("Stored %s (%d bytes)", key, len(value))

    async def remove(self, key: str) -> None:
        await asyncio.to_thread(self._delete, key)

    async def list_keys(self, prefix: str = "") -> list[str]:
        return await asyncio.to_thread(self._list, prefix)
