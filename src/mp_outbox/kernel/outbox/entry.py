"""Kernel outbox – DispatchEntry and its state machine.

::

    pending ──claim──▶ delivering ──success──▶ delivered
                          │
                          ├─ retryable failure, attempts < max ──▶ failed-retryable (claimable after backoff)
                          ├─ retryable failure, attempts >= max ─▶ failed-terminal
                          ├─ non-retryable failure ──────────────▶ failed-terminal
                          └─ lease expiry ───────────────────────▶ pending (attempts unchanged)

Stores apply these transitions through the methods below so the in-memory
and SQL adapters share one definition of every state change.
"""
from __future__ import annotations

import dataclasses
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from mp_outbox.kernel.errors import ConflictError, InvariantViolationError, LeaseLostError
from mp_outbox.kernel.time import utc_now

MAX_ERROR_LENGTH = 1000


class DispatchStatus(str, Enum):
    PENDING = "pending"
    DELIVERING = "delivering"
    DELIVERED = "delivered"
    FAILED_RETRYABLE = "failed-retryable"
    FAILED_TERMINAL = "failed-terminal"

    @property
    def is_terminal(self) -> bool:
        return self in (DispatchStatus.DELIVERED, DispatchStatus.FAILED_TERMINAL)

    @property
    def is_claimable(self) -> bool:
        return self in CLAIMABLE_STATUSES


CLAIMABLE_STATUSES: frozenset[DispatchStatus] = frozenset(
    {DispatchStatus.PENDING, DispatchStatus.FAILED_RETRYABLE}
)


def _truncate(error: str) -> str:
    return error[:MAX_ERROR_LENGTH]


@dataclasses.dataclass
class DispatchEntry:
    """One delivery of one domain event to one channel."""

    domain_event_id: str
    delivery_channel: str
    payload_checksum: str
    id: str = dataclasses.field(default_factory=lambda: str(uuid4()))
    status: DispatchStatus = DispatchStatus.PENDING
    attempts: int = 0
    max_attempts: int = 8
    available_at: datetime = dataclasses.field(default_factory=utc_now)
    locked_at: datetime | None = None
    locked_by: str | None = None
    delivered_at: datetime | None = None
    failed_at: datetime | None = None
    last_error: str | None = None
    last_error_at: datetime | None = None
    trace_id: str | None = None
    correlation_id: str | None = None
    dry_run: bool = False
    metadata: dict[str, Any] = dataclasses.field(default_factory=dict)
    created_at: datetime = dataclasses.field(default_factory=utc_now)
    updated_at: datetime = dataclasses.field(default_factory=utc_now)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def is_ready(self, now: datetime) -> bool:
        """``True`` when a worker may claim this entry at *now*."""
        return self.status.is_claimable and self.locked_by is None and self.available_at <= now

    def is_leased_by(self, worker_id: str) -> bool:
        return self.status == DispatchStatus.DELIVERING and self.locked_by == worker_id

    def lease_expired(self, cutoff: datetime) -> bool:
        return (
            self.status == DispatchStatus.DELIVERING
            and self.locked_at is not None
            and self.locked_at <= cutoff
        )

    def check_invariants(self) -> None:
        """Raise :class:`InvariantViolationError` if any entry invariant is broken."""
        if self.status != DispatchStatus.FAILED_TERMINAL and self.attempts > self.max_attempts:
            raise InvariantViolationError(
                f"Entry {self.id} has {self.attempts} attempts over a budget of {self.max_attempts}",
                entry_id=self.id,
            )
        if (self.locked_by is not None) != (self.status == DispatchStatus.DELIVERING):
            raise InvariantViolationError(
                f"Entry {self.id} lease holder {self.locked_by!r} does not match status {self.status.value}",
                entry_id=self.id,
            )
        if (self.delivered_at is not None) != (self.status == DispatchStatus.DELIVERED):
            raise InvariantViolationError(
                f"Entry {self.id} delivered_at does not match status {self.status.value}",
                entry_id=self.id,
            )

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def claim(self, worker_id: str, now: datetime) -> None:
        if not self.is_ready(now):
            raise ConflictError(
                f"Dispatch entry '{self.id}' is not claimable (status={self.status.value})",
                entry_id=self.id,
            )
        self.status = DispatchStatus.DELIVERING
        self.locked_by = worker_id
        self.locked_at = now
        self.updated_at = now

    def mark_delivered(
        self,
        worker_id: str,
        now: datetime,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        self._require_lease(worker_id)
        self.status = DispatchStatus.DELIVERED
        self.delivered_at = now
        if metadata:
            self.metadata = {**self.metadata, **metadata}
        self._clear_lease(now)

    def record_failure(
        self,
        worker_id: str,
        error: str,
        now: datetime,
        *,
        terminal: bool = False,
        next_available_at: datetime | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Count one failed attempt and settle the entry.

        The entry is finalized when the failure is non-retryable or when the
        attempt budget is spent; otherwise it becomes claimable again at
        *next_available_at*.
        """
        self._require_lease(worker_id)
        self.attempts += 1
        self.last_error = _truncate(error)
        self.last_error_at = now
        if metadata:
            self.metadata = {**self.metadata, **metadata}
        if terminal or self.attempts >= self.max_attempts:
            self.status = DispatchStatus.FAILED_TERMINAL
            self.failed_at = now
        else:
            self.status = DispatchStatus.FAILED_RETRYABLE
            self.available_at = next_available_at or now
        self._clear_lease(now)

    def release(self, now: datetime) -> None:
        """Return an abandoned lease to the ready pool; attempts are preserved."""
        if self.status != DispatchStatus.DELIVERING:
            raise ConflictError(f"Dispatch entry '{self.id}' is not leased", entry_id=self.id)
        self.status = DispatchStatus.PENDING
        self.available_at = now
        self._clear_lease(now)

    def cancel(self, reason: str, now: datetime) -> None:
        if self.status.is_terminal:
            raise ConflictError(
                f"Dispatch entry '{self.id}' is already {self.status.value} and cannot be cancelled",
                entry_id=self.id,
            )
        self.status = DispatchStatus.FAILED_TERMINAL
        self.failed_at = now
        self.last_error = _truncate(f"cancelled: {reason}")
        self.last_error_at = now
        self._clear_lease(now)

    def _require_lease(self, worker_id: str) -> None:
        if not self.is_leased_by(worker_id):
            raise LeaseLostError(self.id, worker_id)

    def _clear_lease(self, now: datetime) -> None:
        self.locked_by = None
        self.locked_at = None
        self.updated_at = now


class OutcomeKind(str, Enum):
    DELIVERED = "delivered"
    RETRY_SCHEDULED = "retry-scheduled"
    FAILED_TERMINAL = "failed-terminal"
    LEASE_LOST = "lease-lost"


@dataclasses.dataclass(frozen=True)
class DispatchOutcome:
    """What a single :meth:`Dispatcher.dispatch` call did to an entry."""

    entry_id: str
    kind: OutcomeKind
    attempts: int
    error: str | None = None
    next_available_at: datetime | None = None
    dry_run: bool = False

    @property
    def succeeded(self) -> bool:
        return self.kind == OutcomeKind.DELIVERED


__all__ = [
    "CLAIMABLE_STATUSES",
    "DispatchEntry",
    "DispatchOutcome",
    "DispatchStatus",
    "MAX_ERROR_LENGTH",
    "OutcomeKind",
]
