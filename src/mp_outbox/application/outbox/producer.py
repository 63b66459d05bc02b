"""Application outbox – TransactionalOutbox producer facade.

Usage::

    async with uow_factory() as uow:
        await orders.save(order)                       # business mutation
        await TransactionalOutbox(uow).publish(
            "order", order.id, "order.captured", {"total": "12.50"},
            channels=["webhook", "analytics"],
        )
"""
from __future__ import annotations

import dataclasses
from collections.abc import Iterable
from typing import Any

from mp_outbox.application.outbox.enqueuer import Enqueuer
from mp_outbox.application.outbox.recorder import EventRecorder
from mp_outbox.kernel.outbox import DispatchEntry, DomainEvent, OutboxUnitOfWork
from mp_outbox.kernel.time import Clock, SystemClock


@dataclasses.dataclass(frozen=True)
class Publication:
    """A recorded event together with the entries it was fanned out to."""
    event: DomainEvent
    entries: list[DispatchEntry]


class TransactionalOutbox:
    """Records and enqueues through the producer's own unit of work."""

    def __init__(
        self,
        uow: OutboxUnitOfWork,
        clock: Clock | None = None,
        default_max_attempts: int = 8,
    ) -> None:
        clock = clock or SystemClock()
        self._recorder = EventRecorder(uow.events, clock)
        self._enqueuer = Enqueuer(uow.entries, clock, default_max_attempts)

    async def record(
        self,
        entity_type: str,
        entity_id: str,
        event_type: str,
        payload: dict[str, Any] | None = None,
        performed_by: str | None = None,
        *,
        trace_id: str | None = None,
        correlation_id: str | None = None,
    ) -> DomainEvent:
        return await self._recorder.record(
            entity_type,
            entity_id,
            event_type,
            payload,
            performed_by,
            trace_id=trace_id,
            correlation_id=correlation_id,
        )

    async def enqueue(
        self,
        event: DomainEvent,
        channels: Iterable[str],
        *,
        max_attempts: int | None = None,
        dry_run: bool = False,
        metadata: dict[str, Any] | None = None,
    ) -> list[DispatchEntry]:
        return await self._enqueuer.enqueue(
            event, channels, max_attempts=max_attempts, dry_run=dry_run, metadata=metadata
        )

    async def publish(
        self,
        entity_type: str,
        entity_id: str,
        event_type: str,
        payload: dict[str, Any] | None = None,
        channels: Iterable[str] = (),
        *,
        performed_by: str | None = None,
        max_attempts: int | None = None,
        dry_run: bool = False,
        metadata: dict[str, Any] | None = None,
        trace_id: str | None = None,
        correlation_id: str | None = None,
    ) -> Publication:
        event = await self.record(
            entity_type,
            entity_id,
            event_type,
            payload,
            performed_by,
            trace_id=trace_id,
            correlation_id=correlation_id,
        )
        entries = await self.enqueue(
            event, channels, max_attempts=max_attempts, dry_run=dry_run, metadata=metadata
        )
        return Publication(event=event, entries=entries)


__all__ = ["Publication", "TransactionalOutbox"]
