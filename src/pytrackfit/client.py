"""High-level async client for capturing and syncing track-fitting data."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable, Mapping
from datetime import UTC, datetime, timedelta
from typing import Any, TypeVar

import aiohttp
import pydantic

from pytrackfit._constants import ACTIVITY_TIMEFRAMES, TMS_ENDPOINT, UDM_ENDPOINT
from pytrackfit._transport import AiohttpTransport, JsonTransport
from pytrackfit.auth import AuthProvider, StoreTokenAuth
from pytrackfit.cache.entries import EntryCache
from pytrackfit.cache.ttl import TtlCache
from pytrackfit.config import TrackfitConfig
from pytrackfit.exceptions import TrackfitError, ValidationError
from pytrackfit.models._base import TrackfitBaseModel
from pytrackfit.models.entry import (
    EntryKind,
    InspectionPayload,
    Location,
    MovementPayload,
    ScanPayload,
    SyncState,
    TrackingEntry,
    payload_dict,
    validate_entry,
)
from pytrackfit.models.inspection import InspectionChecks, grade_inspection
from pytrackfit.models.qr import parse_fitting_code
from pytrackfit.models.results import (
    ActivityStats,
    DashboardSummary,
    ExportBundle,
    FailedEntry,
    ImportSummary,
    SyncCycleReport,
    SyncStatus,
)
from pytrackfit.storage.base import KeyValueStore, MemoryStore
from pytrackfit.storage.file import FileStore
from pytrackfit.sync.endpoints import HttpEndpoint, RemoteEndpoint
from pytrackfit.sync.probe import NetworkProbe
from pytrackfit.sync.queue import SyncQueue
from pytrackfit.sync.synchronizer import Synchronizer

_logger = logging.getLogger(__name__)

M = TypeVar("M", bound=TrackfitBaseModel)

DASHBOARD_CACHE_KEY = "dashboard"

_TIMEFRAME_SPANS: dict[str, timedelta] = {
    "day": timedelta(days=1),
    "week": timedelta(days=7),
    "month": timedelta(days=30),
}


def _build(model: type[M], **fields: Any) -> M:
    """Construct a payload model, converting pydantic errors to :class:`ValidationError`."""
    try:
        return model(**fields)
    except pydantic.ValidationError as exc:
        first = exc.errors()[0] if exc.errors() else {}
        field = ".".join(str(part) for part in first.get("loc", ()))
        raise ValidationError(f"Invalid {model.__name__}: {field}: {first.get('msg', exc)}", field=field) from exc


class TrackfitClient:
    """Capture, query and sync tracking entries.

    Usage::

        async with TrackfitClient(TrackfitConfig.from_env()) as client:
            entry = await client.track_scan(qr_code="RC-L2409-20240920-VND001-00042")
            client.start_background_sync()

    Capture methods only touch the local store and the queue; they work
    offline and never wait on the network. Uploads happen in sync cycles
    (:meth:`trigger_sync` or the background task).
    """

    def __init__(
        self,
        config: TrackfitConfig | None = None,
        *,
        store: KeyValueStore | None = None,
        session: aiohttp.ClientSession | None = None,
        transport: JsonTransport | None = None,
        endpoints: Iterable[RemoteEndpoint] | None = None,
        auth: AuthProvider | None = None,
        clock: Callable[[], float] = time.time,
        on_sync_cycle: Callable[[SyncCycleReport], None] | None = None,
    ) -> None:
        self._config = config or TrackfitConfig()
        if store is None:
            store = FileStore(self._config.storage_dir) if self._config.storage_dir else MemoryStore()
        self._store = store
        self._external_session = session is not None
        self._http_session = session
        self._external_transport = transport is not None
        self._transport = transport
        self._custom_endpoints = list(endpoints) if endpoints is not None else None
        self._auth = auth if auth is not None else StoreTokenAuth(store)
        self._clock = clock
        self._on_sync_cycle = on_sync_cycle

        self._entries = EntryCache(store)
        self._queue = SyncQueue(store, required_endpoints=self._config.required_endpoints, clock=clock)
        self._ttl_cache = TtlCache(store=store, clock=clock)
        self._probe: NetworkProbe | None = None
        self._sync: Synchronizer | None = None
        self._dashboard_dirty = False

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> TrackfitClient:
        if self._transport is None:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            self._transport = AiohttpTransport(self._http_session)

        endpoints = self._custom_endpoints
        if endpoints is None:
            endpoints = self._default_endpoints(self._transport)

        self._probe = NetworkProbe(
            self._transport,
            self._config.effective_probe_url,
            timeout=self._config.probe_timeout,
            offline_mode=self._config.offline_mode,
            clock=self._clock,
        )
        self._sync = Synchronizer(
            self._config,
            queue=self._queue,
            entries=self._entries,
            endpoints=endpoints,
            probe=self._probe,
            clock=self._clock,
            on_cycle=self._handle_cycle,
        )
        restored = await self._queue.load()
        if restored:
            _logger.info("Restored %d queued entries from local store", restored)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        if self._sync is not None:
            await self._sync.shutdown()
        # The memo is persisted; drop it if a cycle changed entries since it was computed.
        await self._flush_dashboard()
        self._sync = None
        self._probe = None
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
        if not self._external_transport:
            self._transport = None

    def _default_endpoints(self, transport: JsonTransport) -> list[RemoteEndpoint]:
        cfg = self._config
        return [
            HttpEndpoint(UDM_ENDPOINT, cfg.udm_base_url, transport, auth=self._auth, path=cfg.upload_path),
            HttpEndpoint(TMS_ENDPOINT, cfg.tms_base_url, transport, auth=self._auth, path=cfg.upload_path),
        ]

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_sync(self) -> Synchronizer:
        if self._sync is None:
            raise TrackfitError("Client not initialized. Use 'async with TrackfitClient(...) as client:'")
        return self._sync

    async def _invalidate_dashboard(self) -> None:
        self._dashboard_dirty = False
        await self._ttl_cache.invalidate(DASHBOARD_CACHE_KEY)

    async def _flush_dashboard(self) -> None:
        if self._dashboard_dirty:
            await self._invalidate_dashboard()

    def _reject_failed(self, entry: TrackingEntry) -> None:
        item = self._queue.get(entry.id)
        if item is not None and item.terminal:
            raise ValidationError(
                f"Entry {entry.id} has failed permanently; use retry_failed() or discard() first",
                field="id",
            )

    def _handle_cycle(self, report: SyncCycleReport) -> None:
        # Called synchronously from the cycle; the dashboard is flushed lazily.
        if report.attempted:
            self._dashboard_dirty = True
        if self._on_sync_cycle is not None:
            try:
                self._on_sync_cycle(report)
            except Exception:
                _logger.debug("on_sync_cycle callback failed", exc_info=True)

    @property
    def config(self) -> TrackfitConfig:
        return self._config

    @property
    def store(self) -> KeyValueStore:
        return self._store

    @property
    def queue(self) -> SyncQueue:
        return self._queue

    @property
    def probe(self) -> NetworkProbe | None:
        return self._probe

    @property
    def synchronizer(self) -> Synchronizer | None:
        return self._sync

    # ------------------------------------------------------------------
    # Capture
    # ------------------------------------------------------------------

    async def enqueue(self, entry: TrackingEntry | Mapping[str, Any]) -> TrackingEntry:
        """Validate, persist and queue an entry.

        Raises :class:`ValidationError` for malformed entries and for ids
        whose queued upload already failed permanently (those go through
        :meth:`retry_failed` or :meth:`discard`). Storage faults are
        logged and the entry is kept in memory.
        """
        validated = validate_entry(entry)
        self._reject_failed(validated)
        await self._entries.put(validated)
        if validated.sync_state.is_open:
            await self._queue.enqueue(validated)
        await self._invalidate_dashboard()
        if self._sync is not None and self._sync.running and self._sync.online:
            self._sync.wake()
        return validated

    async def _capture(self, kind: EntryKind, subject_id: str | None, payload: TrackfitBaseModel) -> TrackingEntry:
        if not subject_id or not subject_id.strip():
            raise ValidationError("A fitting id is required", field="subjectId")
        entry = validate_entry({"kind": kind.value, "subjectId": subject_id, "payload": payload_dict(payload)})
        return await self.enqueue(entry)

    async def track_scan(
        self,
        fitting_id: str | None = None,
        *,
        qr_code: str | None = None,
        location: Location | None = None,
        user_id: str | None = None,
        scan_id: str | None = None,
        scan_type: str = "qr_code",
    ) -> TrackingEntry:
        """Record a scan. A given *qr_code* is parsed and must be valid.

        The fitting id defaults to the QR code itself.
        """
        fitting = parse_fitting_code(qr_code) if qr_code is not None else None
        payload = _build(
            ScanPayload,
            scan_id=scan_id,
            scan_type=scan_type,
            qr_code=fitting.qr_code if fitting else None,
            fitting=fitting,
            location=location,
            user_id=user_id,
        )
        subject = fitting_id or (fitting.qr_code if fitting else None)
        return await self._capture(EntryKind.SCAN, subject, payload)

    async def track_inspection(
        self,
        fitting_id: str,
        *,
        condition: str | None = None,
        notes: str = "",
        inspector: str | None = None,
        inspection_type: str = "visual",
        duration: float = 0.0,
        photos: int = 0,
        location: Location | None = None,
        inspection_id: str | None = None,
        checks: InspectionChecks | Mapping[str, Any] | None = None,
        overall_grade: str | None = None,
    ) -> TrackingEntry:
        """Record an inspection.

        When *checks* are given they are graded now and the result is
        stored with the entry; *condition* then defaults to the graded
        visual condition.
        """
        grading = None
        if checks is not None:
            if not isinstance(checks, InspectionChecks):
                checks = _build(InspectionChecks, **checks)
            today = datetime.fromtimestamp(self._clock(), UTC).date()
            grading = grade_inspection(
                checks,
                today=today,
                overall_grade=overall_grade,
                inspection_type=inspection_type,
            )
            if condition is None:
                condition = grading.visual_condition
        payload = _build(
            InspectionPayload,
            inspection_id=inspection_id,
            condition=condition,
            notes=notes,
            inspection_type=inspection_type,
            duration=duration,
            photos=photos,
            location=location,
            user_id=inspector,
            overall_grade=overall_grade,
            checks=checks,
            grading=grading,
        )
        return await self._capture(EntryKind.INSPECTION, fitting_id, payload)

    async def track_movement(
        self,
        fitting_id: str,
        *,
        from_location: Location,
        to_location: Location,
        user_id: str | None = None,
        reason: str = "relocation",
        transport_method: str = "manual",
        approval_id: str | None = None,
        estimated_duration: float = 0.0,
    ) -> TrackingEntry:
        payload = _build(
            MovementPayload,
            from_location=from_location,
            to_location=to_location,
            reason=reason,
            transport_method=transport_method,
            approval_id=approval_id,
            estimated_duration=estimated_duration,
            user_id=user_id,
        )
        return await self._capture(EntryKind.MOVEMENT, fitting_id, payload)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_entry(self, entry_id: str) -> TrackingEntry | None:
        return await self._entries.get(entry_id)

    async def list_entries(
        self,
        *,
        kind: EntryKind | None = None,
        state: SyncState | None = None,
    ) -> list[TrackingEntry]:
        """All entries, newest first, optionally filtered."""
        entries = await self._entries.list_all()
        return [e for e in entries if (kind is None or e.kind == kind) and (state is None or e.sync_state == state)]

    async def tracking_history(self, fitting_id: str, limit: int = 50) -> list[TrackingEntry]:
        entries = await self._entries.list_all()
        return [e for e in entries if e.subject_id == fitting_id][:limit]

    async def recent_activity(self, limit: int = 20) -> list[TrackingEntry]:
        entries = await self._entries.list_all()
        return entries[:limit]

    async def activity_stats(self, timeframe: str = "week", *, now: datetime | None = None) -> ActivityStats:
        """Counts of captures within the last day, week or month (30 days)."""
        if timeframe not in ACTIVITY_TIMEFRAMES:
            raise ValidationError(f"Unknown timeframe {timeframe!r}; use one of {', '.join(ACTIVITY_TIMEFRAMES)}")
        end = now or datetime.now(UTC)
        start = end - _TIMEFRAME_SPANS[timeframe]
        window = [e for e in await self._entries.list_all() if e.timestamp >= start]
        return ActivityStats(
            total_activities=len(window),
            scans=sum(1 for e in window if e.kind == EntryKind.SCAN),
            inspections=sum(1 for e in window if e.kind == EntryKind.INSPECTION),
            movements=sum(1 for e in window if e.kind == EntryKind.MOVEMENT),
            timeframe=timeframe,
            period_start=start,
            period_end=end,
        )

    async def _compute_dashboard(self) -> dict[str, Any]:
        entries = await self._entries.list_all()
        by_kind = {kind: sum(1 for e in entries if e.kind == kind) for kind in EntryKind}
        by_state = {state: sum(1 for e in entries if e.sync_state == state) for state in SyncState}
        summary = DashboardSummary(
            total_entries=len(entries),
            by_kind=by_kind,
            pending=by_state[SyncState.PENDING],
            partial=by_state[SyncState.PARTIAL],
            synced=by_state[SyncState.SYNCED],
            failed=by_state[SyncState.FAILED],
            fittings_tracked=len({e.subject_id for e in entries}),
            last_activity=entries[0].timestamp if entries else None,
        )
        return summary.to_json_dict()

    async def dashboard_summary(self) -> DashboardSummary:
        """Aggregate counts, memoized for ``config.dashboard_ttl`` seconds.

        New captures and completed sync cycles invalidate the memo.
        """
        await self._flush_dashboard()
        value = await self._ttl_cache.get_or_compute(
            DASHBOARD_CACHE_KEY,
            self._config.dashboard_ttl,
            self._compute_dashboard,
        )
        return DashboardSummary.model_validate(value)

    def sync_status(self) -> SyncStatus:
        required = self._config.required_endpoints
        pending = partial = failed = 0
        failures: list[FailedEntry] = []
        for item in self._queue.items():
            if item.terminal:
                failed += 1
                failures.append(
                    FailedEntry(
                        entry_id=item.entry_id,
                        error=item.last_error,
                        error_kind=item.error_kind,
                        attempts=item.attempts,
                    )
                )
            elif item.any_succeeded(required):
                partial += 1
            else:
                pending += 1
        sync = self._sync
        return SyncStatus(
            online=sync.online if sync is not None else False,
            offline_mode=self._probe.offline_mode if self._probe is not None else self._config.offline_mode,
            running=sync.running if sync is not None else False,
            queued=len(self._queue),
            pending=pending,
            partial=partial,
            failed=failed,
            failures=failures,
            last_cycle=sync.last_cycle if sync is not None else None,
        )

    # ------------------------------------------------------------------
    # Sync control
    # ------------------------------------------------------------------

    async def trigger_sync(self) -> SyncCycleReport:
        """Probe connectivity now and run one sync cycle if online."""
        sync = self._require_sync()
        if self._probe is not None:
            await self._probe.check()
        return await sync.run_cycle()

    def stop_sync(self) -> None:
        """Stop the running cycle after the uploads already in progress."""
        self._require_sync().stop()

    def start_background_sync(self) -> None:
        self._require_sync().start()

    async def stop_background_sync(self) -> None:
        await self._require_sync().shutdown()

    def set_offline_mode(self, enabled: bool) -> None:
        """Switch explicit offline mode at runtime."""
        if self._probe is None:
            raise TrackfitError("Client not initialized. Use 'async with TrackfitClient(...) as client:'")
        self._probe.set_offline_mode(enabled)

    async def retry_failed(self, entry_id: str | None = None) -> int:
        """Make failed entries eligible for sync again; returns how many were reset."""
        if entry_id is not None:
            item = self._queue.get(entry_id)
            candidates = [item] if item is not None and item.terminal else []
        else:
            candidates = [item for item in self._queue.items() if item.terminal]
        count = 0
        for item in candidates:
            if not await self._queue.reset(item.entry_id):
                continue
            count += 1
            entry = await self._entries.get(item.entry_id)
            if entry is not None:
                state = SyncState.PARTIAL if item.any_succeeded(self._config.required_endpoints) else SyncState.PENDING
                await self._entries.put(entry.with_sync_state(state))
        if count:
            await self._invalidate_dashboard()
            _logger.info("Reset %d failed entries for retry", count)
        return count

    async def discard(self, entry_id: str, *, delete_entry: bool = False) -> bool:
        """Drop an entry from the sync queue, optionally deleting its data too."""
        removed = await self._queue.discard(entry_id)
        if delete_entry:
            await self._entries.remove(entry_id)
        if removed or delete_entry:
            await self._invalidate_dashboard()
        return removed

    # ------------------------------------------------------------------
    # Data management
    # ------------------------------------------------------------------

    async def clear_all(self) -> int:
        """Delete every entry, the queue and memoized aggregates; returns entries removed."""
        if self._sync is not None:
            self._sync.stop()
        removed = await self._entries.clear()
        await self._queue.clear()
        await self._ttl_cache.clear()
        self._dashboard_dirty = False
        _logger.info("Cleared %d tracking entries", removed)
        return removed

    async def export_data(self) -> ExportBundle:
        entries = await self._entries.list_all()
        stats = await self.activity_stats("month")
        return ExportBundle(total_entries=len(entries), stats=stats, entries=entries)

    async def import_data(self, data: ExportBundle | Mapping[str, Any]) -> ImportSummary:
        """Store entries from an export; unsynced ones are queued.

        Individually invalid entries are skipped and logged.
        """
        if isinstance(data, ExportBundle):
            raw_entries: list[Any] = [entry.to_json_dict() for entry in data.entries]
        else:
            candidate = data.get("entries") if isinstance(data, Mapping) else None
            if not isinstance(candidate, list):
                raise ValidationError("Invalid import data format: 'entries' list missing", field="entries")
            raw_entries = candidate

        imported = queued = skipped = 0
        for raw in raw_entries:
            try:
                entry = validate_entry(raw)
                self._reject_failed(entry)
            except ValidationError as exc:
                skipped += 1
                _logger.warning("Skipping imported entry: %s", exc)
                continue
            await self._entries.put(entry)
            imported += 1
            if entry.sync_state.is_open and await self._queue.enqueue(entry):
                queued += 1
        if imported:
            await self._invalidate_dashboard()
        return ImportSummary(imported=imported, queued=queued, skipped=skipped, total=len(raw_entries))
