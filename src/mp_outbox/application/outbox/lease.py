"""Application outbox – LeaseManager."""
from __future__ import annotations

from collections.abc import Sequence

from mp_outbox.kernel.errors import ValidationError
from mp_outbox.kernel.outbox import DispatchEntry, OutboxUnitOfWorkFactory
from mp_outbox.kernel.time import Clock, SystemClock
from mp_outbox.observability.logging import get_logger

logger = get_logger(__name__)


class LeaseManager:
    """Hands ready entries to a worker; the store's atomic claim is the only coordination."""

    def __init__(self, uow_factory: OutboxUnitOfWorkFactory, clock: Clock | None = None) -> None:
        self._uow_factory = uow_factory
        self._clock = clock or SystemClock()

    async def claim(
        self,
        worker_id: str,
        batch_size: int,
        channels: Sequence[str] | None = None,
    ) -> list[DispatchEntry]:
        if not worker_id:
            raise ValidationError("worker_id must not be empty", field="worker_id")
        if batch_size < 1:
            raise ValidationError("batch_size must be >= 1", field="batch_size")
        now = self._clock.now()
        async with self._uow_factory() as uow:
            claimed = await uow.entries.claim(worker_id, batch_size, now, channels or None)
        if claimed:
            logger.debug("outbox.lease.claimed", worker_id=worker_id, count=len(claimed))
        return claimed


__all__ = ["LeaseManager"]
