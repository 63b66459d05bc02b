"""Kernel time – Clock port + implementations."""
from mp_outbox.kernel.time.clock import Clock, FrozenClock, SystemClock, ensure_utc, utc_now

__all__ = ["Clock", "FrozenClock", "SystemClock", "ensure_utc", "utc_now"]
