"""Kernel outbox – persistence ports.

Adapters (SQLAlchemy, in-memory) implement these against a single
transactional resource; all methods run inside the caller's unit of work.
"""
from __future__ import annotations

import abc
from collections.abc import Sequence
from datetime import datetime
from typing import Any

from mp_outbox.kernel.outbox.dead_letter import DeadLetterEntry
from mp_outbox.kernel.outbox.entry import DispatchEntry, DispatchStatus
from mp_outbox.kernel.outbox.event import DomainEvent


class EventLog(abc.ABC):
    """Port: append-only store of domain events.

    There is intentionally no update or delete operation.
    """

    @abc.abstractmethod
    async def append(self, event: DomainEvent) -> None: ...

    @abc.abstractmethod
    async def get(self, event_id: str) -> DomainEvent | None: ...

    @abc.abstractmethod
    async def list_for_entity(self, entity_type: str, entity_id: str) -> list[DomainEvent]:
        """Return the events recorded for one entity, oldest first."""
        ...


class DispatchStore(abc.ABC):
    """Port: the shared dispatch-entry table.

    Every write is a guarded transition; concurrent claimants never receive
    the same row and a worker can only settle entries it still leases.
    """

    @abc.abstractmethod
    async def add(self, entry: DispatchEntry) -> None:
        """Insert a new entry; raises ``ConflictError`` if (event, channel) exists."""
        ...

    @abc.abstractmethod
    async def get(self, entry_id: str) -> DispatchEntry | None: ...

    @abc.abstractmethod
    async def find(self, domain_event_id: str, delivery_channel: str) -> DispatchEntry | None: ...

    @abc.abstractmethod
    async def list_for_event(self, domain_event_id: str) -> list[DispatchEntry]: ...

    @abc.abstractmethod
    async def list_by_status(self, status: DispatchStatus, limit: int = 100) -> list[DispatchEntry]: ...

    @abc.abstractmethod
    async def count_by_status(self) -> dict[DispatchStatus, int]: ...

    @abc.abstractmethod
    async def claim(
        self,
        worker_id: str,
        batch_size: int,
        now: datetime,
        channels: Sequence[str] | None = None,
    ) -> list[DispatchEntry]:
        """Atomically lease up to *batch_size* ready entries, oldest first."""
        ...

    @abc.abstractmethod
    async def mark_delivered(
        self,
        entry_id: str,
        worker_id: str,
        now: datetime,
        metadata: dict[str, Any] | None = None,
    ) -> DispatchEntry: ...

    @abc.abstractmethod
    async def mark_failed(
        self,
        entry_id: str,
        worker_id: str,
        error: str,
        now: datetime,
        *,
        terminal: bool = False,
        next_available_at: datetime | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> DispatchEntry: ...

    @abc.abstractmethod
    async def cancel(self, entry_id: str, reason: str, now: datetime) -> DispatchEntry: ...

    @abc.abstractmethod
    async def reclaim_expired(self, cutoff: datetime, now: datetime) -> list[DispatchEntry]:
        """Release every ``delivering`` entry locked at or before *cutoff*."""
        ...


class DeadLetterStore(abc.ABC):
    """Port: write-once record of entries that failed for good."""

    @abc.abstractmethod
    async def record(self, entry: DeadLetterEntry) -> None: ...

    @abc.abstractmethod
    async def list(self, limit: int = 100) -> list[DeadLetterEntry]:
        """Return at most *limit* dead-letter entries (oldest first)."""
        ...

    @abc.abstractmethod
    async def count(self) -> int: ...


__all__ = ["DeadLetterStore", "DispatchStore", "EventLog"]
