"""Best-effort network reachability probe.

The probe publishes a boolean ``online`` signal that the synchronizer
consults before starting a cycle. It never raises and never blocks
capture operations.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from pytrackfit._transport import JsonTransport
from pytrackfit.exceptions import TransientNetworkError

_logger = logging.getLogger(__name__)

OnlineListener = Callable[[bool], None]


class NetworkProbe:
    """Reachability check against a single URL.

    Any HTTP answer below 500 counts as online: the network path works
    even if the probed resource requires auth or does not exist.
    """

    def __init__(
        self,
        transport: JsonTransport | None,
        url: str,
        *,
        timeout: float = 3.0,
        offline_mode: bool = False,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._transport = transport
        self._url = url
        self._timeout = timeout
        self._offline_mode = offline_mode
        self._clock = clock
        self._online = False
        self._last_checked: float | None = None
        self._listeners: list[OnlineListener] = []

    @property
    def online(self) -> bool:
        return self._online and not self._offline_mode

    @property
    def offline_mode(self) -> bool:
        return self._offline_mode

    @property
    def last_checked(self) -> float | None:
        return self._last_checked

    def set_offline_mode(self, enabled: bool) -> None:
        """Switch explicit offline mode; while on, :meth:`check` does no I/O."""
        self._offline_mode = enabled
        if enabled:
            self._publish(False)

    def add_listener(self, listener: OnlineListener) -> Callable[[], None]:
        """Register a callback for online/offline transitions; returns an unsubscribe function."""
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    async def check(self) -> bool:
        """Probe once and publish the result."""
        if self._offline_mode or self._transport is None:
            self._publish(False)
            return False
        try:
            status = await self._transport.probe(self._url, timeout=self._timeout)
        except TransientNetworkError as exc:
            _logger.debug("Probe failed: %s", exc)
            online = False
        except Exception:
            _logger.debug("Probe raised unexpectedly", exc_info=True)
            online = False
        else:
            online = status < 500
        self._last_checked = self._clock()
        self._publish(online)
        return online

    def _publish(self, online: bool) -> None:
        changed = online != self._online
        self._online = online
        if not changed:
            return
        _logger.info("Network is now %s", "online" if online else "offline")
        for listener in list(self._listeners):
            try:
                listener(online)
            except Exception:
                _logger.debug("Online listener failed", exc_info=True)
