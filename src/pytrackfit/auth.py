"""Bearer-token providers for portal uploads."""

from __future__ import annotations

import logging
from typing import Protocol

from pytrackfit._constants import AUTH_TOKEN_KEY
from pytrackfit.exceptions import StorageFault
from pytrackfit.storage.base import KeyValueStore

_logger = logging.getLogger(__name__)


class AuthProvider(Protocol):
    async def get_auth_headers(self) -> dict[str, str]:
        ...


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


class StaticTokenAuth:
    """Always sends the same bearer token."""

    def __init__(self, token: str) -> None:
        if not token.strip():
            raise ValueError("token must be non-empty")
        self._token = token.strip()

    async def get_auth_headers(self) -> dict[str, str]:
        return bearer(self._token)


class StoreTokenAuth:
    """Reads the token the login flow saved in the local store.

    Returns no headers when no token is stored or the store is
    unavailable; the endpoint then answers 401 and the upload is retried
    later.
    """

    def __init__(self, store: KeyValueStore, *, key: str = AUTH_TOKEN_KEY) -> None:
        self._store = store
        self._key = key

    async def get_auth_headers(self) -> dict[str, str]:
        try:
            raw = await self._store.get(self._key)
        except (StorageFault, OSError) as exc:
            _logger.warning("Could not read auth token: %s", exc)
            return {}
        if not raw:
            return {}
        token = raw.decode("utf-8", errors="replace").strip().strip('"')
        return bearer(token) if token else {}

    async def set_token(self, token: str | None) -> None:
        """Store (or with ``None`` remove) the token."""
        if token:
            await self._store.set(self._key, token.encode("utf-8"))
        else:
            await self._store.remove(self._key)
