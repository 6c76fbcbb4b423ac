from __future__ import annotations

import random

import pytest

from pytrackfit.sync import Backoff


def test_delay_doubles_up_to_cap() -> None:
    backoff = Backoff(base=1.0, cap=60.0, jitter=0.0)

    assert [backoff.delay(n) for n in range(1, 9)] == [1.0, 2.0, 4.0, 8.0, 16.0, 32.0, 60.0, 60.0]
    assert backoff.delay(500) == 60.0


def test_jitter_stays_within_bounds() -> None:
    backoff = Backoff(base=2.0, cap=60.0, jitter=0.25)
    rng = random.Random(42)

    delays = [backoff.delay(3, rng) for _ in range(200)]

    assert all(6.0 <= d <= 10.0 for d in delays)
    assert len(set(delays)) > 1


@pytest.mark.parametrize("attempt", [0, -3])
def test_non_positive_attempt_uses_base(attempt: int) -> None:
    assert Backoff(base=1.5, cap=10.0, jitter=0.0).delay(attempt) == 1.5
