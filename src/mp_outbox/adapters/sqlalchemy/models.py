"""SQLAlchemy adapter – outbox tables.

``domain_events``
    append-only event log.
``domain_event_dispatches``
    one row per (event, channel); ``UNIQUE(domain_event_id, delivery_channel)``,
    ``UNIQUE(payload_checksum)`` and an index on ``(status, available_at)``
    backing the claim query.  Rows cascade with their event.
``domain_event_dead_letters``
    write-once snapshots of entries that failed for good.

The tables are not migrated automatically; call :func:`create_outbox_tables`
at startup or copy the DDL into a migration.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.engine import Dialect
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from mp_outbox.kernel.outbox import DeadLetterEntry, DispatchEntry, DispatchStatus, DomainEvent
from mp_outbox.kernel.time import ensure_utc


class UtcDateTime(TypeDecorator[datetime]):
    """Timezone-aware UTC datetimes on every dialect.

    SQLite has no timezone support, so values are stored there as naive UTC
    and re-tagged on the way out.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        if value is None:
            return None
        value = ensure_utc(value)
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        if value is None:
            return None
        return ensure_utc(value)


class OutboxBase(DeclarativeBase):
    pass


class DomainEventRow(OutboxBase):
    __tablename__ = "domain_events"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    entity_type: Mapped[str] = mapped_column(String(100), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(100), nullable=False)
    event_type: Mapped[str] = mapped_column(String(150), nullable=False, index=True)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    performed_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    occurred_at: Mapped[datetime] = mapped_column(UtcDateTime, nullable=False)
    trace_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    correlation_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)

    __table_args__ = (Index("ix_domain_events_entity", "entity_type", "entity_id"),)

    @classmethod
    def from_domain(cls, event: DomainEvent) -> "DomainEventRow":
        return cls(
            id=event.id,
            entity_type=event.entity_type,
            entity_id=event.entity_id,
            event_type=event.event_type,
            payload=dict(event.payload),
            performed_by=event.performed_by,
            occurred_at=event.occurred_at,
            trace_id=event.trace_id,
            correlation_id=event.correlation_id,
        )

    def to_domain(self) -> DomainEvent:
        return DomainEvent(
            id=self.id,
            entity_type=self.entity_type,
            entity_id=self.entity_id,
            event_type=self.event_type,
            payload=dict(self.payload or {}),
            performed_by=self.performed_by,
            occurred_at=self.occurred_at,
            trace_id=self.trace_id,
            correlation_id=self.correlation_id,
        )


class DispatchEntryRow(OutboxBase):
    __tablename__ = "domain_event_dispatches"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    domain_event_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("domain_events.id", ondelete="CASCADE"),
        nullable=False,
    )
    delivery_channel: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default=DispatchStatus.PENDING.value)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=8)
    available_at: Mapped[datetime] = mapped_column(UtcDateTime, nullable=False)
    locked_at: Mapped[datetime | None] = mapped_column(UtcDateTime, nullable=True)
    locked_by: Mapped[str | None] = mapped_column(String(150), nullable=True)
    delivered_at: Mapped[datetime | None] = mapped_column(UtcDateTime, nullable=True)
    failed_at: Mapped[datetime | None] = mapped_column(UtcDateTime, nullable=True)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_error_at: Mapped[datetime | None] = mapped_column(UtcDateTime, nullable=True)
    payload_checksum: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    trace_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    correlation_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    dry_run: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # ``metadata`` is reserved on declarative classes.
    meta: Mapped[dict[str, Any]] = mapped_column("metadata", JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(UtcDateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UtcDateTime, nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "domain_event_id",
            "delivery_channel",
            name="uq_domain_event_dispatches_event_channel",
        ),
        Index("ix_domain_event_dispatches_status_available", "status", "available_at"),
        Index("ix_domain_event_dispatches_locked", "status", "locked_at"),
    )

    @classmethod
    def from_domain(cls, entry: DispatchEntry) -> "DispatchEntryRow":
        return cls(
            id=entry.id,
            domain_event_id=entry.domain_event_id,
            delivery_channel=entry.delivery_channel,
            payload_checksum=entry.payload_checksum,
            **{key.key: value for key, value in cls.values_from(entry).items()},
        )

    @classmethod
    def values_from(cls, entry: DispatchEntry) -> dict[Any, Any]:
        """The mutable columns of *entry*, keyed for ``update().values()``."""
        return {
            cls.status: entry.status.value,
            cls.attempts: entry.attempts,
            cls.max_attempts: entry.max_attempts,
            cls.available_at: entry.available_at,
            cls.locked_at: entry.locked_at,
            cls.locked_by: entry.locked_by,
            cls.delivered_at: entry.delivered_at,
            cls.failed_at: entry.failed_at,
            cls.last_error: entry.last_error,
            cls.last_error_at: entry.last_error_at,
            cls.trace_id: entry.trace_id,
            cls.correlation_id: entry.correlation_id,
            cls.dry_run: entry.dry_run,
            cls.meta: dict(entry.metadata),
            cls.created_at: entry.created_at,
            cls.updated_at: entry.updated_at,
        }

    def to_domain(self) -> DispatchEntry:
        return DispatchEntry(
            id=self.id,
            domain_event_id=self.domain_event_id,
            delivery_channel=self.delivery_channel,
            payload_checksum=self.payload_checksum,
            status=DispatchStatus(self.status),
            attempts=self.attempts,
            max_attempts=self.max_attempts,
            available_at=self.available_at,
            locked_at=self.locked_at,
            locked_by=self.locked_by,
            delivered_at=self.delivered_at,
            failed_at=self.failed_at,
            last_error=self.last_error,
            last_error_at=self.last_error_at,
            trace_id=self.trace_id,
            correlation_id=self.correlation_id,
            dry_run=self.dry_run,
            metadata=dict(self.meta or {}),
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


class DeadLetterRow(OutboxBase):
    __tablename__ = "domain_event_dead_letters"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    dispatch_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    event_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    event_type: Mapped[str] = mapped_column(String(150), nullable=False)
    delivery_channel: Mapped[str] = mapped_column(String(100), nullable=False)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False)
    failure_reason: Mapped[str] = mapped_column(String(100), nullable=False)
    failure_message: Mapped[str] = mapped_column(Text, nullable=False, default="")
    event_payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    meta: Mapped[dict[str, Any]] = mapped_column("metadata", JSON, nullable=False, default=dict)
    failed_at: Mapped[datetime] = mapped_column(UtcDateTime, nullable=False, index=True)

    @classmethod
    def from_domain(cls, entry: DeadLetterEntry) -> "DeadLetterRow":
        return cls(
            id=entry.id,
            dispatch_id=entry.dispatch_id,
            event_id=entry.event_id,
            event_type=entry.event_type,
            delivery_channel=entry.delivery_channel,
            attempts=entry.attempts,
            failure_reason=entry.failure_reason,
            failure_message=entry.failure_message,
            event_payload=dict(entry.event_payload),
            meta=dict(entry.metadata),
            failed_at=entry.failed_at,
        )

    def to_domain(self) -> DeadLetterEntry:
        return DeadLetterEntry(
            id=self.id,
            dispatch_id=self.dispatch_id,
            event_id=self.event_id,
            event_type=self.event_type,
            delivery_channel=self.delivery_channel,
            attempts=self.attempts,
            failure_reason=self.failure_reason,
            failure_message=self.failure_message,
            event_payload=dict(self.event_payload or {}),
            metadata=dict(self.meta or {}),
            failed_at=self.failed_at,
        )


async def create_outbox_tables(engine: AsyncEngine) -> None:
    """Create the three outbox tables if they do not exist."""
    async with engine.begin() as conn:
        await conn.run_sync(OutboxBase.metadata.create_all)


async def drop_outbox_tables(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(OutboxBase.metadata.drop_all)


__all__ = [
    "DeadLetterRow",
    "DispatchEntryRow",
    "DomainEventRow",
    "OutboxBase",
    "UtcDateTime",
    "create_outbox_tables",
    "drop_outbox_tables",
]
