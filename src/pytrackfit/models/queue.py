"""Sync queue bookkeeping models.

Queue items carry identifiers and per-endpoint outcomes only; entry
payloads live in the entry store.
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import StrEnum

from pydantic import ConfigDict, Field

from pytrackfit.models._base import TrackfitBaseModel


class ErrorKind(StrEnum):
    TRANSIENT = "transient"
    AUTH = "auth"
    REJECTED = "rejected"
    EXHAUSTED = "exhausted"
    MISSING = "missing"


class EndpointOutcome(TrackfitBaseModel):
    """Latest upload outcome of one entry against one endpoint."""

    model_config = ConfigDict(frozen=False)

    success: bool = False
    server_id: str | None = None
    error: str | None = None
    error_kind: ErrorKind | None = None
    attempts: int = 0
    updated_at: float | None = None


class QueueItem(TrackfitBaseModel):
    model_config = ConfigDict(frozen=False)

    entry_id: str = Field(min_length=1)
    enqueued_at: float
    attempts: int = 0
    """Completed sync attempts that left the entry unsynced."""
    next_attempt_at: float = 0.0
    outcomes: dict[str, EndpointOutcome] = Field(default_factory=dict)
    terminal: bool = False
    last_error: str | None = None
    error_kind: ErrorKind | None = None

    def succeeded(self, endpoint: str) -> bool:
        outcome = self.outcomes.get(endpoint)
        return outcome is not None and outcome.success

    def all_succeeded(self, endpoints: Iterable[str]) -> bool:
        return all(self.succeeded(name) for name in endpoints)

    def any_succeeded(self, endpoints: Iterable[str]) -> bool:
        return any(self.succeeded(name) for name in endpoints)

    def is_due(self, now: float) -> bool:
        return not self.terminal and self.next_attempt_at <= now


class QueueSnapshot(TrackfitBaseModel):
    """Durable form of the queue, stored under a single key."""

    items: list[QueueItem] = Field(default_factory=list)
