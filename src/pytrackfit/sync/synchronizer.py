"""Drain the sync queue against the configured remote endpoints.

Per entry the state machine is::

    PENDING -> (attempt) -> SYNCED | PARTIAL | FAILED
    PARTIAL -> PENDING (retried after backoff)

* SYNCED: every required endpoint has a recorded success; the item is
  settled out of the queue.
* FAILED: a required endpoint rejected the data, or ``max_attempts``
  attempts went by without success. The item stays queued as terminal
  until the user retries or discards it.

Entries in a cycle run concurrently (bounded by ``max_concurrency``);
the endpoint attempts of one entry run strictly one after another.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import random
import time
from collections.abc import Callable, Iterable, Mapping
from datetime import UTC, datetime

from pytrackfit.cache.entries import EntryCache
from pytrackfit.config import TrackfitConfig
from pytrackfit.exceptions import (
    RemoteAuthError,
    RemoteRejection,
    StorageFault,
    TrackfitConfigError,
    TransientNetworkError,
)
from pytrackfit.models.entry import SyncState, TrackingEntry
from pytrackfit.models.queue import ErrorKind, QueueItem
from pytrackfit.models.results import SyncCycleReport
from pytrackfit.sync.backoff import Backoff
from pytrackfit.sync.endpoints import RemoteEndpoint
from pytrackfit.sync.probe import NetworkProbe
from pytrackfit.sync.queue import SyncQueue

_logger = logging.getLogger(__name__)


@dataclasses.dataclass(slots=True)
class _Attempt:
    """What happened to one entry during one cycle."""

    state: SyncState | None
    """Resulting state, or ``None`` when the entry was not started or vanished."""
    started: bool = True


class Synchronizer:
    """Runs sync cycles on demand or from a single background task."""

    def __init__(
        self,
        config: TrackfitConfig,
        *,
        queue: SyncQueue,
        entries: EntryCache,
        endpoints: Mapping[str, RemoteEndpoint] | Iterable[RemoteEndpoint],
        probe: NetworkProbe | None = None,
        clock: Callable[[], float] = time.time,
        rng: random.Random | None = None,
        on_cycle: Callable[[SyncCycleReport], None] | None = None,
    ) -> None:
        self._config = config
        self._queue = queue
        self._entries = entries
        if isinstance(endpoints, Mapping):
            self._endpoints: dict[str, RemoteEndpoint] = dict(endpoints)
        else:
            self._endpoints = {endpoint.name: endpoint for endpoint in endpoints}
        missing = [name for name in config.endpoint_order if name not in self._endpoints]
        if missing:
            raise TrackfitConfigError(f"No endpoint registered for: {', '.join(missing)}")
        if tuple(queue.required_endpoints) != tuple(config.required_endpoints):
            raise TrackfitConfigError("Sync queue and configuration disagree on required endpoints")
        self._required = frozenset(config.required_endpoints)
        self._order = config.endpoint_order
        self._probe = probe
        self._clock = clock
        self._rng = rng or random.Random()
        self._backoff = Backoff(config.backoff_base, config.backoff_cap, config.backoff_jitter)
        self._on_cycle = on_cycle

        self._cycle_lock = asyncio.Lock()
        self._stop_requested = False
        self._task: asyncio.Task[None] | None = None
        self._wakeup = asyncio.Event()
        self._shutdown = False
        self.last_cycle: SyncCycleReport | None = None

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def backoff(self) -> Backoff:
        return self._backoff

    @property
    def is_syncing(self) -> bool:
        return self._cycle_lock.locked()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def online(self) -> bool:
        if self._config.offline_mode:
            return False
        return self._probe.online if self._probe is not None else True

    # ------------------------------------------------------------------
    # Cycle
    # ------------------------------------------------------------------

    def stop(self) -> None:
        """Ask the running cycle to stop.

        Uploads already in progress complete; no further endpoint call is
        started in this cycle.
        """
        if self._cycle_lock.locked():
            _logger.info("Stop requested for running sync cycle")
        self._stop_requested = True

    async def run_cycle(self) -> SyncCycleReport:
        """Attempt every due entry once (up to ``batch_size``)."""
        if not self.online:
            return self._skipped("offline")
        if self._cycle_lock.locked():
            return self._skipped("busy")

        async with self._cycle_lock:
            self._stop_requested = False
            started_at = datetime.now(UTC)
            batch = await self._queue.dequeue_batch(self._config.batch_size)
            semaphore = asyncio.Semaphore(self._config.max_concurrency)

            async def _worker(item: QueueItem) -> tuple[str, _Attempt]:
                async with semaphore:
                    if self._stop_requested:
                        return item.entry_id, _Attempt(state=None, started=False)
                    return item.entry_id, await self._sync_entry(item)

            results = await asyncio.gather(*(_worker(item) for item in batch))

            buckets: dict[SyncState, list[str]] = {state: [] for state in SyncState}
            not_started: list[str] = []
            for entry_id, attempt in results:
                if not attempt.started:
                    not_started.append(entry_id)
                elif attempt.state is not None:
                    buckets[attempt.state].append(entry_id)

            report = SyncCycleReport(
                started_at=started_at,
                finished_at=datetime.now(UTC),
                attempted=len(batch) - len(not_started),
                synced=buckets[SyncState.SYNCED],
                partial=buckets[SyncState.PARTIAL],
                pending=buckets[SyncState.PENDING],
                failed=buckets[SyncState.FAILED],
                not_started=not_started,
                cancelled=self._stop_requested,
            )
            self._stop_requested = False

        if report.attempted:
            _logger.info(
                "Sync cycle: %d attempted, %d synced, %d partial, %d pending, %d failed",
                report.attempted,
                len(report.synced),
                len(report.partial),
                len(report.pending),
                len(report.failed),
            )
        self._finish(report)
        return report

    def _skipped(self, reason: str) -> SyncCycleReport:
        _logger.debug("Sync cycle skipped: %s", reason)
        now = datetime.now(UTC)
        report = SyncCycleReport(started_at=now, finished_at=now, skipped=reason)
        self._finish(report)
        return report

    def _finish(self, report: SyncCycleReport) -> None:
        self.last_cycle = report
        if self._on_cycle is not None:
            try:
                self._on_cycle(report)
            except Exception:
                _logger.debug("on_cycle callback failed", exc_info=True)

    async def _upload(self, name: str, entry: TrackingEntry) -> tuple[bool, str | None, str | None, ErrorKind | None]:
        """One endpoint attempt: ``(success, server_id, error, error_kind)``."""
        endpoint = self._endpoints[name]
        timeout = self._config.upload_timeout
        try:
            result = await asyncio.wait_for(endpoint.upload(entry), timeout=timeout)
        except TimeoutError:
            return False, None, f"{name}: upload timed out after {timeout:g}s", ErrorKind.TRANSIENT
        except RemoteAuthError as exc:
            return False, None, f"{name}: {exc}", ErrorKind.AUTH
        except TransientNetworkError as exc:
            return False, None, f"{name}: {exc}", ErrorKind.TRANSIENT
        except RemoteRejection as exc:
            return False, None, f"{name}: {exc}", ErrorKind.REJECTED
        except Exception as exc:
            _logger.warning("Unexpected error uploading %s to %s", entry.id, name, exc_info=True)
            return False, None, f"{name}: {type(exc).__name__}: {exc}", ErrorKind.TRANSIENT
        if result.success:
            return True, result.server_id, None, None
        kind = ErrorKind.REJECTED if result.rejected else ErrorKind.TRANSIENT
        return False, None, f"{name}: {result.error or 'upload unsuccessful'}", kind

    async def _sync_entry(self, item: QueueItem) -> _Attempt:
        entry_id = item.entry_id
        try:
            entry = await self._entries.get(entry_id, strict=True)
        except StorageFault as exc:
            # Store unreadable right now; the entry may well still be there.
            delay = self._backoff.delay(item.attempts + 1, self._rng)
            await self._queue.schedule_retry(
                entry_id,
                delay,
                error=f"Local store unavailable: {exc}",
                error_kind=ErrorKind.TRANSIENT,
                count_attempt=False,
            )
            _logger.debug("Entry %s could not be read, retrying in %.1fs", entry_id, delay)
            return _Attempt(state=SyncState.PARTIAL if item.any_succeeded(self._required) else SyncState.PENDING)
        if entry is None:
            _logger.warning("Queued entry %s has no stored data; marking it failed", entry_id)
            await self._queue.mark_terminal(
                entry_id,
                error="Entry data missing from local store",
                error_kind=ErrorKind.MISSING,
            )
            return _Attempt(state=SyncState.FAILED)

        rejection: str | None = None
        retryable: tuple[str, ErrorKind] | None = None
        cancelled = False

        for name in self._order:
            if item.succeeded(name):
                continue
            if self._stop_requested:
                cancelled = True
                break
            success, server_id, error, kind = await self._upload(name, entry)
            await self._queue.mark_result(entry_id, name, success, server_id=server_id, error=error, error_kind=kind)
            if success:
                _logger.debug("Uploaded %s to %s (server id %s)", entry_id, name, server_id)
                continue
            _logger.debug("Upload of %s to %s failed (%s): %s", entry_id, name, kind, error)
            if name not in self._required:
                continue
            if kind is ErrorKind.REJECTED:
                rejection = rejection or error
            elif retryable is None:
                retryable = (error or "upload failed", kind or ErrorKind.TRANSIENT)

        current = self._queue.get(entry_id)
        if current is None:
            # Discarded by the user while uploading.
            return _Attempt(state=None)

        if current.all_succeeded(self._required):
            await self._mark_synced(entry)
            return _Attempt(state=SyncState.SYNCED)

        if rejection is not None:
            _logger.warning("Entry %s rejected: %s", entry_id, rejection)
            await self._queue.mark_terminal(entry_id, error=rejection, error_kind=ErrorKind.REJECTED)
            await self._entries.put(entry.with_sync_state(SyncState.FAILED, error=rejection))
            return _Attempt(state=SyncState.FAILED)

        open_state = SyncState.PARTIAL if current.any_succeeded(self._required) else SyncState.PENDING
        if retryable is None:
            # Stopped before any required endpoint failed; not a failed attempt.
            if cancelled:
                await self._entries.put(entry.with_sync_state(open_state, error=entry.sync_error))
            return _Attempt(state=open_state)

        error, kind = retryable
        attempts = current.attempts + 1
        if attempts >= self._config.max_attempts:
            message = f"{error} (gave up after {attempts} attempts)"
            _logger.warning("Entry %s failed permanently: %s", entry_id, message)
            await self._queue.mark_terminal(entry_id, error=message, error_kind=ErrorKind.EXHAUSTED)
            await self._entries.put(entry.with_sync_state(SyncState.FAILED, error=message))
            return _Attempt(state=SyncState.FAILED)

        delay = self._backoff.delay(attempts, self._rng)
        await self._queue.schedule_retry(entry_id, delay, error=error, error_kind=kind)
        await self._entries.put(entry.with_sync_state(open_state, error=error))
        _logger.debug("Entry %s will be retried in %.1fs (attempt %d)", entry_id, delay, attempts)
        return _Attempt(state=open_state)

    async def _mark_synced(self, entry: TrackingEntry) -> None:
        await self._queue.settle(entry.id)
        if self._config.retain_synced:
            await self._entries.put(entry.with_sync_state(SyncState.SYNCED, synced_at=datetime.now(UTC)))
        else:
            await self._entries.remove(entry.id)

    # ------------------------------------------------------------------
    # Background task
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the background probe/sync task (idempotent)."""
        if self.running:
            return
        self._shutdown = False
        self._wakeup.clear()
        self._task = asyncio.get_running_loop().create_task(self._run(), name="pytrackfit-sync")
        _logger.debug("Background sync started")

    def wake(self) -> None:
        """Run the next background iteration now instead of after the interval."""
        self._wakeup.set()

    async def shutdown(self) -> None:
        """Stop the background task, letting an in-flight upload finish."""
        task = self._task
        self._task = None
        if task is None:
            return
        self._shutdown = True
        self.stop()
        self._wakeup.set()
        try:
            await asyncio.wait_for(asyncio.shield(task), timeout=self._config.upload_timeout + 1)
        except TimeoutError:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        _logger.debug("Background sync stopped")

    async def _run(self) -> None:
        while not self._shutdown:
            try:
                online = await self._probe.check() if self._probe is not None else self.online
                if online and self._queue.has_due(self._clock()):
                    await self.run_cycle()
            except Exception:
                _logger.exception("Background sync iteration failed")
            if self._shutdown:
                break
            try:
                await asyncio.wait_for(self._wakeup.wait(), timeout=self._config.probe_interval)
            except TimeoutError:
                pass
            self._wakeup.clear()
