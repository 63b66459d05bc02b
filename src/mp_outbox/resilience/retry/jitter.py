"""Resilience – jitter strategies."""
from __future__ import annotations

import abc
import random

MAX_JITTER_RATIO = 0.5


class JitterStrategy(abc.ABC):
    """Apply randomness to a backoff delay to spread thundering-herd."""

    @abc.abstractmethod
    def apply(self, delay: float) -> float: ...

    @property
    def max_ratio(self) -> float:
        """Largest fraction of the delay this strategy may add."""
        return 0.0


class NoJitter(JitterStrategy):
    def apply(self, delay: float) -> float:
        return delay


class ProportionalJitter(JitterStrategy):
    """Uniform random in ``[delay, delay * (1 + ratio)]``.

    Jitter only ever lengthens the wait, so the retry is never scheduled
    sooner than the backoff asked for.
    """

    def __init__(self, ratio: float = 0.15, rng: random.Random | None = None) -> None:
        if not 0 <= ratio <= MAX_JITTER_RATIO:
            raise ValueError(f"ratio must be within [0, {MAX_JITTER_RATIO}]")
        self.ratio = ratio
        self._rng = rng or random.Random()

    def apply(self, delay: float) -> float:
        return delay + delay * self.ratio * self._rng.random()

    @property
    def max_ratio(self) -> float:
        return self.ratio


__all__ = ["JitterStrategy", "MAX_JITTER_RATIO", "NoJitter", "ProportionalJitter"]
