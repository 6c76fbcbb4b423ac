"""Cache entry model for time-bounded memoization."""

from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import Field

from pytrackfit.models._base import TrackfitBaseModel

T = TypeVar("T")


class CacheEntry(TrackfitBaseModel, Generic[T]):
    """A memoized value and the wall-clock second it was stored at.

    A read at or after ``stored_at + ttl`` is a miss.
    """

    key: str = Field(min_length=1)
    value: T
    stored_at: float
    ttl: float = Field(ge=0)

    @property
    def expires_at(self) -> float:
        return self.stored_at + self.ttl

    def is_fresh(self, now: float, ttl: float | None = None) -> bool:
        """Whether the entry is still valid at *now* (optionally under a different *ttl*)."""
        effective = self.ttl if ttl is None else ttl
        return (now - self.stored_at) < effective
