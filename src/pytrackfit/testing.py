"""Scripted endpoint double for tests and demos.

:class:`FakeEndpoint` implements the same ``RemoteEndpoint`` protocol as
:class:`~pytrackfit.sync.endpoints.HttpEndpoint`, so code under test
never needs a "demo mode" branch.
"""

from __future__ import annotations

import asyncio
from collections import deque
from typing import Literal

from pytrackfit.exceptions import RemoteAuthError, RemoteRejection, TransientNetworkError
from pytrackfit.models.entry import TrackingEntry
from pytrackfit.models.results import UploadResult

Behavior = Literal["ok", "transient", "auth", "reject", "hang"] | UploadResult | BaseException


class FakeEndpoint:
    """Endpoint whose answers are scripted per entry id.

    Behaviors:

    * ``"ok"``: success with server id ``<name>-<entry id>``
    * ``"transient"``: raises :class:`TransientNetworkError` (HTTP 503)
    * ``"auth"``: raises :class:`RemoteAuthError` (HTTP 401)
    * ``"reject"``: raises :class:`RemoteRejection` (HTTP 422)
    * ``"hang"``: never answers (until cancelled by a timeout)
    * an :class:`UploadResult` is returned as-is, an exception instance is raised
    """

    def __init__(self, name: str, *, default: Behavior = "ok", delay: float = 0.0) -> None:
        self._name = name
        self._default = default
        self._delay = delay
        self._scripts: dict[str, deque[Behavior]] = {}
        self.calls: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    @property
    def name(self) -> str:
        return self._name

    def script(self, entry_id: str, *behaviors: Behavior) -> None:
        """Queue behaviors for successive uploads of *entry_id*; the default applies afterwards."""
        self._scripts.setdefault(entry_id, deque()).extend(behaviors)

    def set_default(self, behavior: Behavior) -> None:
        self._default = behavior

    def call_count(self, entry_id: str) -> int:
        return self.calls.count(entry_id)

    async def upload(self, entry: TrackingEntry) -> UploadResult:
        self.calls.append(entry.id)
        script = self._scripts.get(entry.id)
        behavior = script.popleft() if script else self._default
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self._delay:
                await asyncio.sleep(self._delay)
            return await self._resolve(behavior, entry)
        finally:
            self.in_flight -= 1

    async def _resolve(self, behavior: Behavior, entry: TrackingEntry) -> UploadResult:
        if isinstance(behavior, UploadResult):
            return behavior
        if isinstance(behavior, BaseException):
            raise behavior
        if behavior == "ok":
            return UploadResult(success=True, server_id=f"{self._name}-{entry.id}")
        if behavior == "transient":
            raise TransientNetworkError(f"{self._name} unavailable", status_code=503, endpoint=self._name)
        if behavior == "auth":
            raise RemoteAuthError(f"{self._name} refused credentials", status_code=401, endpoint=self._name)
        if behavior == "reject":
            raise RemoteRejection(
                f"{self._name} rejected {entry.id}",
                status_code=422,
                endpoint=self._name,
                detail="invalid payload",
            )
        if behavior == "hang":
            await asyncio.Event().wait()
        raise ValueError(f"Unknown fake behavior: {behavior!r}")
