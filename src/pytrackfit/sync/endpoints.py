"""Remote upload endpoints (UDM and TMS portals)."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Protocol

from pytrackfit._constants import UPLOAD_PATH
from pytrackfit._transport import JsonTransport
from pytrackfit.auth import AuthProvider
from pytrackfit.models.entry import TrackingEntry
from pytrackfit.models.results import UploadResult

_logger = logging.getLogger(__name__)

# Local bookkeeping fields that are not part of the uploaded record.
_LOCAL_FIELDS = frozenset({"sync_state", "sync_error", "synced_at"})


class RemoteEndpoint(Protocol):
    """An independent upload target.

    ``upload`` either returns an :class:`UploadResult` or raises
    :class:`~pytrackfit.exceptions.TransientNetworkError` /
    :class:`~pytrackfit.exceptions.RemoteRejection`.
    """

    @property
    def name(self) -> str:
        ...

    async def upload(self, entry: TrackingEntry) -> UploadResult:
        ...


def upload_body(entry: TrackingEntry) -> dict[str, Any]:
    """Wire representation of an entry (camelCase, without local sync fields)."""
    return entry.model_dump(mode="json", by_alias=True, exclude=set(_LOCAL_FIELDS))


def parse_upload_response(response: Mapping[str, Any]) -> UploadResult:
    """Interpret a 2xx portal response.

    Portals answer ``{"success": true, "serverId": ...}`` (or ``id``).
    An explicit ``"success": false`` is retryable unless the body also
    carries ``"rejected": true``.
    """
    server_id = response.get("serverId") or response.get("id")
    if response.get("success", True) is False:
        error = response.get("error") or response.get("message") or "upload unsuccessful"
        return UploadResult(success=False, error=str(error), rejected=bool(response.get("rejected", False)))
    return UploadResult(success=True, server_id=str(server_id) if server_id is not None else None)


class HttpEndpoint:
    """Uploads entries as JSON to ``<base_url><path>`` with bearer auth."""

    def __init__(
        self,
        name: str,
        base_url: str,
        transport: JsonTransport,
        *,
        auth: AuthProvider | None = None,
        path: str = UPLOAD_PATH,
    ) -> None:
        self._name = name
        self._url = f"{base_url.rstrip('/')}/{path.lstrip('/')}"
        self._transport = transport
        self._auth = auth

    @property
    def name(self) -> str:
        return self._name

    @property
    def url(self) -> str:
        return self._url

    async def upload(self, entry: TrackingEntry) -> UploadResult:
        headers = await self._auth.get_auth_headers() if self._auth is not None else {}
        response = await self._transport.post_json(self._url, upload_body(entry), headers=headers)
        result = parse_upload_response(response)
        _logger.debug("%s upload of %s: success=%s", self._name, entry.id, result.success)
        return result

    def __repr__(self) -> str:
        return f"HttpEndpoint(name={self._name!r}, url={self._url!r})"
