"""Application outbox – Enqueuer."""
from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from mp_outbox.kernel.errors import ConflictError, ValidationError
from mp_outbox.kernel.outbox import DispatchEntry, DispatchStore, DomainEvent, payload_checksum
from mp_outbox.kernel.time import Clock, SystemClock
from mp_outbox.observability.logging import get_logger

logger = get_logger(__name__)


class Enqueuer:
    """Fans a recorded event out to one dispatch entry per delivery channel.

    Re-enqueueing the same event for the same channel is a no-op that returns
    the existing entry; the (event, channel) pair and the payload checksum are
    unique in every store.
    """

    def __init__(
        self,
        entries: DispatchStore,
        clock: Clock | None = None,
        default_max_attempts: int = 8,
    ) -> None:
        if default_max_attempts < 1:
            raise ValidationError("default_max_attempts must be >= 1", field="default_max_attempts")
        self._entries = entries
        self._clock = clock or SystemClock()
        self._default_max_attempts = default_max_attempts

    async def enqueue(
        self,
        event: DomainEvent,
        channels: Iterable[str],
        *,
        max_attempts: int | None = None,
        dry_run: bool = False,
        metadata: dict[str, Any] | None = None,
    ) -> list[DispatchEntry]:
        budget = self._default_max_attempts if max_attempts is None else max_attempts
        if budget < 1:
            raise ValidationError(
                "max_attempts must be >= 1",
                errors=[{"field": "max_attempts", "error": "must be >= 1"}],
            )
        distinct = list(dict.fromkeys(channels))
        if any(not channel for channel in distinct):
            raise ValidationError(
                "Delivery channel must not be empty",
                errors=[{"field": "channels", "error": "must not contain empty names"}],
            )

        now = self._clock.now()
        enqueued: list[DispatchEntry] = []
        for channel in distinct:
            checksum = payload_checksum(event, channel)
            existing = await self._entries.find(event.id, channel)
            if existing is not None:
                enqueued.append(self._reuse(existing, checksum))
                continue
            entry = DispatchEntry(
                domain_event_id=event.id,
                delivery_channel=channel,
                payload_checksum=checksum,
                max_attempts=budget,
                available_at=now,
                trace_id=event.trace_id,
                correlation_id=event.correlation_id,
                dry_run=dry_run,
                metadata=dict(metadata or {}),
                created_at=now,
                updated_at=now,
            )
            try:
                await self._entries.add(entry)
            except ConflictError:
                # Lost an insert race against a concurrent producer.
                existing = await self._entries.find(event.id, channel)
                if existing is None:
                    raise
                entry = self._reuse(existing, checksum)
            else:
                logger.debug(
                    "outbox.entry.enqueued",
                    entry_id=entry.id,
                    event_id=event.id,
                    channel=channel,
                    dry_run=dry_run,
                )
            enqueued.append(entry)
        return enqueued

    @staticmethod
    def _reuse(existing: DispatchEntry, checksum: str) -> DispatchEntry:
        if existing.payload_checksum != checksum:
            raise ConflictError(
                f"Dispatch entry for event '{existing.domain_event_id}' on channel "
                f"'{existing.delivery_channel}' already exists with a different payload"
            )
        return existing


__all__ = ["Enqueuer"]
