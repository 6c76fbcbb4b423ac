"""Entry index and TTL memoization."""

from pytrackfit.cache.entries import EntryCache
from pytrackfit.cache.ttl import TtlCache

__all__ = ["EntryCache", "TtlCache"]
