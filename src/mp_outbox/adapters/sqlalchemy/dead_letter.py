"""SQLAlchemy adapter – SqlAlchemyDeadLetterStore."""
from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mp_outbox.adapters.sqlalchemy.models import DeadLetterRow
from mp_outbox.kernel.outbox import DeadLetterEntry, DeadLetterStore


class SqlAlchemyDeadLetterStore(DeadLetterStore):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def record(self, entry: DeadLetterEntry) -> None:
        self._session.add(DeadLetterRow.from_domain(entry))
        await self._session.flush()

    async def list(self, limit: int = 100) -> list[DeadLetterEntry]:
        stmt = (
            select(DeadLetterRow)
            .order_by(DeadLetterRow.failed_at.asc(), DeadLetterRow.id.asc())
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return [row.to_domain() for row in result.scalars().all()]

    async def count(self) -> int:
        result = await self._session.execute(select(func.count()).select_from(DeadLetterRow))
        return int(result.scalar_one())


__all__ = ["SqlAlchemyDeadLetterStore"]
