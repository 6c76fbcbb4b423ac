"""HTTP transport for portal uploads and reachability checks."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any, Protocol

import aiohttp

from pytrackfit._constants import AUTH_STATUSES, RETRYABLE_STATUSES, USER_AGENT
from pytrackfit._redact import redact_for_log
from pytrackfit.exceptions import RemoteAuthError, RemoteRejection, TransientNetworkError

_logger = logging.getLogger(__name__)


class JsonTransport(Protocol):
    """Structural transport interface used by endpoints and the network probe.

    Having a protocol here makes it easy to pass test doubles while
    keeping the production implementation (`AiohttpTransport`) concrete.
    """

    async def post_json(
        self,
        url: str,
        payload: Mapping[str, Any],
        *,
        headers: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> dict[str, Any]:
        ...

    async def probe(self, url: str, *, timeout: float) -> int:
        ...


def raise_for_status(status: int, text: str, url: str) -> None:
    """Map a non-2xx HTTP status onto the pytrackfit error taxonomy."""
    if 200 <= status < 300:
        return
    snippet = text[:200]
    if status in AUTH_STATUSES:
        raise RemoteAuthError(f"HTTP {status} from {url}: credentials refused", status_code=status, endpoint=url)
    if status in RETRYABLE_STATUSES or status >= 500 or status < 400:
        raise TransientNetworkError(f"HTTP {status} from {url}: {snippet}", status_code=status, endpoint=url)
    raise RemoteRejection(f"HTTP {status} from {url}: {snippet}", status_code=status, endpoint=url, detail=snippet)


class AiohttpTransport:
    """JSON-over-HTTPS transport on a shared :class:`aiohttp.ClientSession`."""

    def __init__(self, http_session: aiohttp.ClientSession) -> None:
        self._http = http_session

    async def post_json(
        self,
        url: str,
        payload: Mapping[str, Any],
        *,
        headers: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> dict[str, Any]:
        """POST *payload* as JSON and return the decoded JSON object.

        An empty 2xx body decodes to ``{}``.
        """
        request_headers: dict[str, str] = {
            "accept": "application/json",
            "content-type": "application/json; charset=UTF-8",
            "user-agent": USER_AGENT,
        }
        if headers:
            request_headers.update(headers)

        kwargs: dict[str, Any] = {}
        if timeout is not None:
            kwargs["timeout"] = aiohttp.ClientTimeout(total=timeout)

        body = json.dumps(payload, separators=(",", ":"))
        _logger.debug("POST %s headers=%s body=%s", url, redact_for_log(request_headers), redact_for_log(payload))

        try:
            async with self._http.post(url, data=body, headers=request_headers, **kwargs) as resp:
                status = resp.status
                text = await resp.text()
        except TimeoutError as exc:
            raise TransientNetworkError(f"Request to {url} timed out", endpoint=url) from exc
        except aiohttp.ClientError as exc:
            raise TransientNetworkError(f"Request to {url} failed: {exc}", endpoint=url) from exc

        raise_for_status(status, text, url)

        if not text.strip():
            return {}
        try:
            body_json = json.loads(text)
        except json.JSONDecodeError as exc:
            raise TransientNetworkError(
                f"Invalid JSON from {url}: {text[:200]}",
                status_code=status,
                endpoint=url,
            ) from exc
        if not isinstance(body_json, dict):
            raise TransientNetworkError(
                f"Expected a JSON object from {url}, got {type(body_json).__name__}",
                status_code=status,
                endpoint=url,
            )
        _logger.debug("Response %s from %s: %s", status, url, redact_for_log(body_json))
        return body_json

    async def probe(self, url: str, *, timeout: float) -> int:
        """Issue a ``HEAD`` request and return the HTTP status."""
        try:
            async with self._http.head(
                url,
                allow_redirects=False,
                timeout=aiohttp.ClientTimeout(total=timeout),
                headers={"user-agent": USER_AGENT},
            ) as resp:
                return resp.status
        except TimeoutError as exc:
            raise TransientNetworkError(f"Probe of {url} timed out", endpoint=url) from exc
        except aiohttp.ClientError as exc:
            raise TransientNetworkError(f"Probe of {url} failed: {exc}", endpoint=url) from exc
