"""Application outbox – EventRecorder."""
from __future__ import annotations

from typing import Any

from mp_outbox.kernel.outbox import DomainEvent, EventLog, canonical_json
from mp_outbox.kernel.time import Clock, SystemClock
from mp_outbox.observability.correlation import CorrelationContext
from mp_outbox.observability.logging import get_logger

logger = get_logger(__name__)


class EventRecorder:
    """Appends domain events to the log inside the caller's unit of work.

    The recorder never talks to sinks: if the surrounding transaction rolls
    back, the event is gone with it.
    """

    def __init__(self, events: EventLog, clock: Clock | None = None) -> None:
        self._events = events
        self._clock = clock or SystemClock()

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
        ctx = CorrelationContext.get()
        if ctx is not None:
            trace_id = trace_id or ctx.trace_id
            correlation_id = correlation_id or ctx.correlation_id
            performed_by = performed_by or ctx.user_id
        event = DomainEvent(
            entity_type=entity_type,
            entity_id=entity_id,
            event_type=event_type,
            payload=dict(payload or {}),
            performed_by=performed_by,
            occurred_at=self._clock.now(),
            trace_id=trace_id,
            correlation_id=correlation_id,
        )
        # Fail here, not at enqueue time, when the payload cannot be fingerprinted.
        canonical_json(event.payload)
        await self._events.append(event)
        logger.debug(
            "outbox.event.recorded",
            event_id=event.id,
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
        )
        return event


__all__ = ["EventRecorder"]
