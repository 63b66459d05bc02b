"""Application outbox – Reclaimer.

A crashed or stalled worker is only ever detected through its lease age.
Reclaimed entries return to ``pending`` with their attempt count intact:
the interrupted delivery never reported an outcome, so it is not counted.
"""
from __future__ import annotations

from datetime import timedelta

from mp_outbox.application.outbox.metrics import DispatchMetrics
from mp_outbox.kernel.errors import ValidationError
from mp_outbox.kernel.outbox import OutboxUnitOfWorkFactory
from mp_outbox.kernel.time import Clock, SystemClock
from mp_outbox.observability.logging import get_logger

logger = get_logger(__name__)


def _require_positive(lease_timeout: timedelta) -> timedelta:
    if lease_timeout <= timedelta(0):
        raise ValidationError(
            "lease_timeout must be positive",
            errors=[{"field": "lease_timeout", "error": "must be > 0"}],
        )
    return lease_timeout


class Reclaimer:
    def __init__(
        self,
        uow_factory: OutboxUnitOfWorkFactory,
        clock: Clock | None = None,
        lease_timeout: timedelta = timedelta(minutes=10),
        metrics: DispatchMetrics | None = None,
    ) -> None:
        self._uow_factory = uow_factory
        self._clock = clock or SystemClock()
        self._lease_timeout = _require_positive(lease_timeout)
        self._metrics = metrics or DispatchMetrics()

    @property
    def lease_timeout(self) -> timedelta:
        return self._lease_timeout

    async def reclaim_expired_leases(self, lease_timeout: timedelta | None = None) -> int:
        """Release leases taken at or before ``now - lease_timeout``; return how many."""
        timeout = self._lease_timeout if lease_timeout is None else _require_positive(lease_timeout)
        now = self._clock.now()
        async with self._uow_factory() as uow:
            reclaimed = await uow.entries.reclaim_expired(now - timeout, now)
        if reclaimed:
            logger.warning(
                "outbox.lease.reclaimed",
                count=len(reclaimed),
                entry_ids=[entry.id for entry in reclaimed],
                lease_timeout_seconds=timeout.total_seconds(),
            )
        self._metrics.record_reclaimed(len(reclaimed))
        return len(reclaimed)


__all__ = ["Reclaimer"]
