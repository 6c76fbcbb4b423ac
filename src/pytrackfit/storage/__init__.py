"""Local key-value storage backends."""

from pytrackfit.storage.base import KeyValueStore, MemoryStore
from pytrackfit.storage.file import FileStore

__all__ = ["FileStore", "KeyValueStore", "MemoryStore"]
