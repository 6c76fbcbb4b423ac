from __future__ import annotations

import pytest

from pytrackfit.exceptions import TransientNetworkError
from pytrackfit.sync import NetworkProbe


class _ProbeTransport:
    def __init__(self, *answers: int | BaseException) -> None:
        self.answers = list(answers)
        self.calls = 0

    async def post_json(self, *args: object, **kwargs: object) -> dict[str, object]:
        raise AssertionError("unexpected POST")

    async def probe(self, url: str, *, timeout: float) -> int:
        self.calls += 1
        answer = self.answers.pop(0)
        if isinstance(answer, BaseException):
            raise answer
        return answer


@pytest.mark.asyncio
async def test_probe_publishes_transitions_only() -> None:
    transport = _ProbeTransport(404, 200, TransientNetworkError("refused"), 503, 401)
    probe = NetworkProbe(transport, "https://tms.example/v1", clock=lambda: 42.0)
    seen: list[bool] = []
    probe.add_listener(seen.append)

    results = [await probe.check() for _ in range(5)]

    assert results == [True, True, False, False, True]
    assert seen == [True, False, True]
    assert probe.online
    assert probe.last_checked == 42.0


@pytest.mark.asyncio
async def test_offline_mode_skips_io() -> None:
    transport = _ProbeTransport(200)
    probe = NetworkProbe(transport, "https://tms.example/v1", offline_mode=True)

    assert not await probe.check()
    assert transport.calls == 0

    probe.set_offline_mode(False)
    assert await probe.check()
    probe.set_offline_mode(True)
    assert not probe.online


@pytest.mark.asyncio
async def test_listener_errors_and_unsubscribe() -> None:
    probe = NetworkProbe(_ProbeTransport(200, 500), "https://tms.example/v1")
    seen: list[bool] = []

    def broken(_online: bool) -> None:
        raise RuntimeError("listener bug")

    probe.add_listener(broken)
    unsubscribe = probe.add_listener(seen.append)

    assert await probe.check()
    unsubscribe()
    assert not await probe.check()
    assert seen == [True]
