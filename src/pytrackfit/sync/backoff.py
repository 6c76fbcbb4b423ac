"""Bounded exponential backoff with jitter."""

from __future__ import annotations

import dataclasses
import random


@dataclasses.dataclass(frozen=True)
class Backoff:
    """Delay before retry number *attempt* (1-based).

    ``min(cap, base * 2 ** (attempt - 1))``, scaled by a random factor
    in ``[1 - jitter, 1 + jitter]`` and clamped to ``[0, cap]``.
    """

    base: float = 1.0
    cap: float = 60.0
    jitter: float = 0.2

    def raw_delay(self, attempt: int) -> float:
        exponent = max(0, attempt - 1)
        # Avoid float overflow for large attempt counts.
        if exponent > 62:
            return self.cap
        return min(self.cap, self.base * (2**exponent))

    def delay(self, attempt: int, rng: random.Random | None = None) -> float:
        value = self.raw_delay(attempt)
        if self.jitter > 0 and value > 0:
            source = rng if rng is not None else random
            value *= 1 + source.uniform(-self.jitter, self.jitter)
        return max(0.0, min(self.cap, value))
