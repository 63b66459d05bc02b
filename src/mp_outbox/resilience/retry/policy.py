"""Resilience – DispatchRetryPolicy.

Chosen constants (from the production dispatcher this library replaces):

* first retry after 30 s, doubling on every further failure;
* capped at 900 s (15 min);
* up to +15 % proportional jitter;
* 8 attempts before an entry is dead-lettered (see ``DispatchSettings``).
"""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from mp_outbox.resilience.retry.backoff import BackoffStrategy, ExponentialBackoff
from mp_outbox.resilience.retry.jitter import JitterStrategy, ProportionalJitter

if TYPE_CHECKING:
    from mp_outbox.config.settings import DispatchSettings


class DispatchRetryPolicy:
    """Decides when a failed dispatch entry becomes claimable again."""

    def __init__(
        self,
        backoff: BackoffStrategy | None = None,
        jitter: JitterStrategy | None = None,
    ) -> None:
        self.backoff = backoff or ExponentialBackoff()
        self.jitter = jitter or ProportionalJitter()
        multiplier = getattr(self.backoff, "multiplier", None)
        if multiplier is not None and multiplier <= 1 + self.jitter.max_ratio:
            raise ValueError(
                "backoff multiplier must exceed 1 + jitter ratio so later attempts always wait longer"
            )

    @classmethod
    def from_settings(cls, settings: "DispatchSettings") -> "DispatchRetryPolicy":
        return cls(
            backoff=ExponentialBackoff(
                base_delay=settings.initial_backoff_seconds,
                max_delay=settings.max_backoff_seconds,
                multiplier=settings.backoff_multiplier,
            ),
            jitter=ProportionalJitter(settings.jitter_ratio),
        )

    def backoff_seconds(self, attempts: int) -> float:
        """Jittered wait after the entry's *attempts*-th failure."""
        return self.jitter.apply(self.backoff.compute(attempts))

    def next_available_at(self, attempts: int, now: datetime) -> datetime:
        return now + timedelta(seconds=self.backoff_seconds(attempts))

    @staticmethod
    def is_exhausted(attempts: int, max_attempts: int) -> bool:
        return attempts >= max_attempts


__all__ = ["DispatchRetryPolicy"]
