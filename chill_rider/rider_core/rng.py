"""
RNG - Lehmer / Park-Miller Generator
====================================

Provides the reproducible random stream behind map layout, coin placement,
movement rolls and delivery-session decisions.

The generator state is a single integer so it can be stored inside an
immutable GameState and threaded through every transition.
"""

from __future__ import annotations

import time
from typing import Callable, List, Optional, Sequence, TypeVar

MODULUS = 2147483647      # 2^31 - 1
MULTIPLIER = 16807

T = TypeVar("T")


def normalize_seed(seed: int) -> int:
    """Map any integer seed into the valid state range [1, MODULUS - 1]."""
    state = int(seed) % MODULUS
    if state == 0:
        state = MODULUS - 1
    return state


def default_seed() -> int:
    """Wall-clock fallback seed (milliseconds)."""
    return int(time.time() * 1000)


class LehmerRng:
    """
    Multiplicative linear-congruential generator.

    Same seed gives the same infinite sequence of floats in [0, 1).
    Instances are callable, so they can be passed wherever a
    ``() -> float`` source is expected.
    """

    def __init__(self, seed: int):
        """
        Initialize generator.

        Args:
            seed: Any integer; normalized into [1, MODULUS - 1].
        """
        self._state = normalize_seed(seed)

    @classmethod
    def from_state(cls, state: int) -> "LehmerRng":
        """Resume a generator from a previously saved state."""
        rng = cls(1)
        rng._state = normalize_seed(state)
        return rng

    @property
    def state(self) -> int:
        """Current internal state (for checkpointing)."""
        return self._state

    def random(self) -> float:
        """Next float in [0, 1)."""
        self._state = (self._state * MULTIPLIER) % MODULUS
        return (self._state - 1) / (MODULUS - 1)

    __call__ = random

    def index(self, n: int) -> int:
        """Uniform index in [0, n)."""
        return int(self.random() * n)

    def choice(self, items: Sequence[T]) -> T:
        """Uniform choice from a non-empty sequence."""
        return items[self.index(len(items))]

    def sample(self, items: Sequence[T], k: int) -> List[T]:
        """
        Draw up to k distinct items without replacement.

        Args:
            items: Candidate pool.
            k: Number of items wanted.

        Returns:
            List of min(k, len(items)) items in draw order.
        """
        pool = list(items)
        chosen: List[T] = []
        while len(chosen) < k and pool:
            chosen.append(pool.pop(self.index(len(pool))))
        return chosen


def create_rng(seed: int) -> Callable[[], float]:
    """Create a seeded ``() -> float`` stream."""
    return LehmerRng(seed)


def pick_index(rng: Callable[[], float], n: int) -> int:
    """Uniform index in [0, n) drawn from any ``() -> float`` source."""
    return min(int(rng() * n), n - 1)


def map_seed(seed: int, level: int, stride: int = 997) -> int:
    """Seed for the map layout of a level."""
    return seed + level * stride


def coin_seed(seed: int, level: int, stride: int = 4243, offset: int = 99) -> int:
    """Seed for the coin layout of a level."""
    return seed + level * stride + offset


def resolve_seed(seed: Optional[int]) -> int:
    """Return the given seed, or the wall-clock fallback when None."""
    return default_seed() if seed is None else int(seed)
