"""Result and summary models returned to the presentation layer."""

from __future__ import annotations

from datetime import datetime

from pydantic import ConfigDict, Field

from pytrackfit.models._base import Timestamp, TrackfitBaseModel, utcnow
from pytrackfit.models.entry import EntryKind, TrackingEntry
from pytrackfit.models.queue import ErrorKind


class UploadResult(TrackfitBaseModel):
    """Outcome of one ``upload`` call against one endpoint.

    Endpoints may also raise :class:`~pytrackfit.exceptions.TransientNetworkError`
    or :class:`~pytrackfit.exceptions.RemoteRejection` instead of returning
    an unsuccessful result.
    """

    model_config = ConfigDict(extra="ignore")

    success: bool
    server_id: str | None = None
    error: str | None = None
    rejected: bool = False
    """Unsuccessful because the endpoint refused the data (terminal)."""


class SyncCycleReport(TrackfitBaseModel):
    """Summary of one sync cycle."""

    started_at: Timestamp = Field(default_factory=utcnow)
    finished_at: Timestamp | None = None
    skipped: str | None = None
    """Reason the cycle did not run (``"offline"``, ``"busy"``), if any."""
    attempted: int = 0
    synced: list[str] = Field(default_factory=list)
    partial: list[str] = Field(default_factory=list)
    pending: list[str] = Field(default_factory=list)
    failed: list[str] = Field(default_factory=list)
    not_started: list[str] = Field(default_factory=list)
    cancelled: bool = False

    @property
    def ran(self) -> bool:
        return self.skipped is None


class FailedEntry(TrackfitBaseModel):
    entry_id: str
    error: str | None = None
    error_kind: ErrorKind | None = None
    attempts: int = 0


class SyncStatus(TrackfitBaseModel):
    """Queryable view of background sync health."""

    online: bool
    offline_mode: bool = False
    running: bool = False
    queued: int = 0
    pending: int = 0
    partial: int = 0
    failed: int = 0
    failures: list[FailedEntry] = Field(default_factory=list)
    last_cycle: SyncCycleReport | None = None


class ActivityStats(TrackfitBaseModel):
    total_activities: int = 0
    scans: int = 0
    inspections: int = 0
    movements: int = 0
    timeframe: str
    period_start: Timestamp
    period_end: Timestamp


class DashboardSummary(TrackfitBaseModel):
    total_entries: int = 0
    by_kind: dict[EntryKind, int] = Field(default_factory=dict)
    pending: int = 0
    partial: int = 0
    synced: int = 0
    failed: int = 0
    fittings_tracked: int = 0
    last_activity: Timestamp | None = None
    generated_at: Timestamp = Field(default_factory=utcnow)


class ExportBundle(TrackfitBaseModel):
    """Portable dump of all local tracking data."""

    export_date: Timestamp = Field(default_factory=utcnow)
    total_entries: int = 0
    stats: ActivityStats | None = None
    entries: list[TrackingEntry] = Field(default_factory=list)

    @property
    def filename(self) -> str:
        stamp: datetime = self.export_date
        return f"tracking_export_{int(stamp.timestamp() * 1000)}.json"


class ImportSummary(TrackfitBaseModel):
    imported: int = 0
    queued: int = 0
    skipped: int = 0
    total: int = 0
