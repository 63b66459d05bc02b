"""Resilience – timeout enforcement."""
from mp_outbox.resilience.timeouts.policy import TimeoutPolicy

__all__ = ["TimeoutPolicy"]
