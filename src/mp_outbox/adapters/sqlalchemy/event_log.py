"""SQLAlchemy adapter – SqlAlchemyEventLog."""
from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from mp_outbox.adapters.sqlalchemy.models import DomainEventRow
from mp_outbox.kernel.errors import ConflictError
from mp_outbox.kernel.outbox import DomainEvent, EventLog


class SqlAlchemyEventLog(EventLog):
    """Append-only ``domain_events`` table."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def append(self, event: DomainEvent) -> None:
        self._session.add(DomainEventRow.from_domain(event))
        try:
            await self._session.flush()
        except IntegrityError as exc:
            raise ConflictError(f"Domain event '{event.id}' already recorded", cause=exc) from exc

    async def get(self, event_id: str) -> DomainEvent | None:
        row = await self._session.get(DomainEventRow, event_id)
        return row.to_domain() if row is not None else None

    async def list_for_entity(self, entity_type: str, entity_id: str) -> list[DomainEvent]:
        stmt = (
            select(DomainEventRow)
            .where(
                DomainEventRow.entity_type == entity_type,
                DomainEventRow.entity_id == entity_id,
            )
            .order_by(DomainEventRow.occurred_at.asc(), DomainEventRow.id.asc())
        )
        result = await self._session.execute(stmt)
        return [row.to_domain() for row in result.scalars().all()]


__all__ = ["SqlAlchemyEventLog"]
