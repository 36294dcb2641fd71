"""
Boundary-aware jitter selection.

Jitter only exists to keep independent validators from proposing the
exact same value. It must never push a proposal outside the guard-rail
band, so the draw range narrows depending on where the clamped value sits:

1. No guard rails - full base range [-base_low, +base_high]
2. At the minimum clamp - non-negative only [0, +base_high]
3. At the maximum clamp - non-positive only [-base_low, 0]
4. Inside the band - base range intersected with the room to each bound
"""

import math
import random
from typing import Optional, Protocol


class RandomSource(Protocol):
    """Source of uniformly distributed integers."""

    def next_int(self, lo: int, hi: int) -> int:
        """Return an integer in [lo, hi], both ends inclusive."""
        ...


class SystemRandomSource:
    """RandomSource backed by :class:`random.Random`; seed it for reproducible runs."""

    def __init__(self, seed: Optional[int] = None):
        self._rng = random.Random(seed)

    def next_int(self, lo: int, hi: int) -> int:
        return self._rng.randint(lo, hi)


def choose_jitter(
    r_clamped: float,
    clamp_min: Optional[float],
    clamp_max: Optional[float],
    base_low: int,
    base_high: int,
    rng: RandomSource,
) -> int:
    """Draw a jitter value for the clamped proposal.

    Args:
        r_clamped: Proposal after the guard-rail clamp
        clamp_min: Lower guard-rail bound, None when rails are disabled
        clamp_max: Upper guard-rail bound, None when rails are disabled
        base_low: Magnitude of the largest downward step (>= 0)
        base_high: Magnitude of the largest upward step (>= 0)
        rng: Random source to draw from

    Returns:
        Integer adjustment; 0 when the room inside the band is empty
    """
    if clamp_min is None or clamp_max is None:
        return rng.next_int(-base_low, base_high)

    if r_clamped == clamp_min:
        return rng.next_int(0, base_high)

    if r_clamped == clamp_max:
        return rng.next_int(-base_low, 0)

    low_room = math.ceil(clamp_min - r_clamped)
    high_room = math.floor(clamp_max - r_clamped)
    lo = max(-base_low, low_room)
    hi = min(base_high, high_room)
    if lo > hi:
        return 0
    return rng.next_int(lo, hi)
