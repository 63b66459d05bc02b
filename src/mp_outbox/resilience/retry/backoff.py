"""Resilience – backoff strategies."""
from __future__ import annotations

import abc


class BackoffStrategy(abc.ABC):
    """Compute wait duration (seconds) after the *attempt*-th failure (1-based)."""

    @abc.abstractmethod
    def compute(self, attempt: int) -> float: ...


class ExponentialBackoff(BackoffStrategy):
    """Delay grows exponentially: ``base_delay * multiplier^(attempt - 1)``, capped.

    The first failure waits exactly ``base_delay``.
    """

    def __init__(self, base_delay: float = 30.0, max_delay: float = 900.0, multiplier: float = 2.0) -> None:
        if base_delay <= 0:
            raise ValueError("base_delay must be positive")
        if max_delay < base_delay:
            raise ValueError("max_delay must be >= base_delay")
        if multiplier < 1:
            raise ValueError("multiplier must be >= 1")
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.multiplier = multiplier

    def compute(self, attempt: int) -> float:
        exponent = max(attempt - 1, 0)
        # Stop growing once the cap is hit so large attempt counts cannot overflow.
        delay = self.base_delay
        for _ in range(exponent):
            delay *= self.multiplier
            if delay >= self.max_delay:
                return self.max_delay
        return min(delay, self.max_delay)


__all__ = ["BackoffStrategy", "ExponentialBackoff"]
