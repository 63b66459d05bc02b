"""Resilience – dispatch backoff, jitter and persistence retries."""
from mp_outbox.resilience.retry.backoff import BackoffStrategy, ExponentialBackoff
from mp_outbox.resilience.retry.jitter import JitterStrategy, NoJitter, ProportionalJitter
from mp_outbox.resilience.retry.policy import DispatchRetryPolicy
from mp_outbox.resilience.retry.tenacity_adapter import TenacityRetryPolicy

__all__ = [
    "BackoffStrategy",
    "DispatchRetryPolicy",
    "ExponentialBackoff",
    "JitterStrategy",
    "NoJitter",
    "ProportionalJitter",
    "TenacityRetryPolicy",
]
