from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

import aiohttp
import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from pytrackfit._transport import AiohttpTransport
from pytrackfit.auth import StaticTokenAuth, StoreTokenAuth
from pytrackfit.exceptions import RemoteAuthError, RemoteRejection, StorageFault, TransientNetworkError
from pytrackfit.models import EntryKind, SyncState, TrackingEntry
from pytrackfit.storage import MemoryStore
from pytrackfit.sync import HttpEndpoint
from pytrackfit.sync.endpoints import parse_upload_response


def _app() -> web.Application:
    async def sync(request: web.Request) -> web.Response:
        status = int(request.match_info["status"])
        if status == 200:
            body = await request.json()
            return web.json_response(
                {"success": True, "serverId": f"S-{body['id']}", "auth": request.headers.get("Authorization")}
            )
        if status == 204:
            return web.Response(status=204)
        return web.Response(status=status, text="portal says no")

    async def not_json(_request: web.Request) -> web.Response:
        return web.Response(status=200, text="<html>maintenance</html>")

    async def health(_request: web.Request) -> web.Response:
        return web.Response(status=200)

    app = web.Application()
    app.router.add_post("/status/{status}", sync)
    app.router.add_post("/html", not_json)
    app.router.add_get("/health", health)
    return app


@pytest.mark.asyncio
async def test_post_json_maps_http_statuses() -> None:
    async with TestServer(_app()) as server, aiohttp.ClientSession() as session:
        transport = AiohttpTransport(session)

        def url(path: str) -> str:
            return str(server.make_url(path))

        ok = await transport.post_json(url("/status/200"), {"id": "e1"}, headers={"Authorization": "Bearer t"})
        assert ok == {"success": True, "serverId": "S-e1", "auth": "Bearer t"}
        assert await transport.post_json(url("/status/204"), {}) == {}

        with pytest.raises(TransientNetworkError) as exc_info:
            await transport.post_json(url("/status/503"), {})
        assert exc_info.value.status_code == 503

        with pytest.raises(TransientNetworkError):
            await transport.post_json(url("/status/429"), {})

        with pytest.raises(RemoteAuthError):
            await transport.post_json(url("/status/401"), {})

        with pytest.raises(RemoteRejection) as rejection:
            await transport.post_json(url("/status/422"), {})
        assert rejection.value.detail == "portal says no"

        with pytest.raises(TransientNetworkError, match="Invalid JSON"):
            await transport.post_json(url("/html"), {})

        assert await transport.probe(url("/health"), timeout=1.0) == 200


@pytest.mark.asyncio
async def test_unreachable_host_is_transient() -> None:
    async with TestServer(_app()) as server:
        dead_url = str(server.make_url("/status/200"))
    async with aiohttp.ClientSession() as session:
        transport = AiohttpTransport(session)

        with pytest.raises(TransientNetworkError):
            await transport.post_json(dead_url, {"id": "e1"}, timeout=1.0)
        with pytest.raises(TransientNetworkError):
            await transport.probe(dead_url, timeout=1.0)


class _RecordingTransport:
    def __init__(self, response: dict[str, Any]) -> None:
        self.response = response
        self.requests: list[tuple[str, Mapping[str, Any], Mapping[str, str] | None]] = []

    async def post_json(
        self,
        url: str,
        payload: Mapping[str, Any],
        *,
        headers: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> dict[str, Any]:
        self.requests.append((url, payload, headers))
        return self.response

    async def probe(self, url: str, *, timeout: float) -> int:
        return 200


def _entry() -> TrackingEntry:
    return TrackingEntry(
        id="e1",
        kind=EntryKind.MOVEMENT,
        subject_id="SL-L1-20240101-VND002-00001",
        timestamp=datetime(2026, 1, 1, tzinfo=UTC),
        payload={"fromLocation": "Yard A", "toLocation": {"km": 12.4}},
        sync_state=SyncState.PARTIAL,
        sync_error="tms: HTTP 503",
    )


@pytest.mark.asyncio
async def test_http_endpoint_posts_entry_with_bearer_token() -> None:
    transport = _RecordingTransport({"success": True, "id": 77})
    endpoint = HttpEndpoint("udm", "https://udm.example/v1/", transport, auth=StaticTokenAuth("tok"))

    result = await endpoint.upload(_entry())

    assert result.success
    assert result.server_id == "77"
    url, payload, headers = transport.requests[0]
    assert url == "https://udm.example/v1/track-fittings/sync"
    assert headers == {"Authorization": "Bearer tok"}
    assert payload["subjectId"] == "SL-L1-20240101-VND002-00001"
    assert payload["payload"]["toLocation"] == {"km": 12.4}
    assert "syncState" not in payload
    assert "syncError" not in payload


def test_parse_upload_response_variants() -> None:
    assert parse_upload_response({}).success
    retry = parse_upload_response({"success": False, "message": "busy"})
    assert not retry.success
    assert not retry.rejected
    assert retry.error == "busy"
    rejected = parse_upload_response({"success": False, "error": "duplicate", "rejected": True})
    assert rejected.rejected


class _FaultyStore(MemoryStore):
    async def get(self, key: str) -> bytes | None:
        raise StorageFault("locked", key=key)


@pytest.mark.asyncio
async def test_store_token_auth_reads_saved_token() -> None:
    store = MemoryStore()
    auth = StoreTokenAuth(store)
    assert await auth.get_auth_headers() == {}

    await store.set("authToken", b'"abc"')
    assert await auth.get_auth_headers() == {"Authorization": "Bearer abc"}

    await auth.set_token(None)
    assert await auth.get_auth_headers() == {}
    assert await StoreTokenAuth(_FaultyStore()).get_auth_headers() == {}
