"""Resilience – dispatch backoff, persistence retries and delivery timeouts."""

from mp_outbox.resilience.retry import (
    BackoffStrategy,
    DispatchRetryPolicy,
    ExponentialBackoff,
    JitterStrategy,
    NoJitter,
    ProportionalJitter,
    TenacityRetryPolicy,
)
from mp_outbox.resilience.timeouts import TimeoutPolicy

__all__ = [
    "BackoffStrategy",
    "DispatchRetryPolicy",
    "ExponentialBackoff",
    "JitterStrategy",
    "NoJitter",
    "ProportionalJitter",
    "TenacityRetryPolicy",
    "TimeoutPolicy",
]
