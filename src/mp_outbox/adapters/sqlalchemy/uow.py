"""SQLAlchemy adapter – SqlAlchemyUnitOfWork, SqlAlchemyOutboxUnitOfWork."""
from __future__ import annotations

from collections.abc import Callable
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from mp_outbox.adapters.sqlalchemy.dead_letter import SqlAlchemyDeadLetterStore
from mp_outbox.adapters.sqlalchemy.dispatch_store import SqlAlchemyDispatchStore
from mp_outbox.adapters.sqlalchemy.event_log import SqlAlchemyEventLog
from mp_outbox.kernel.outbox import OutboxUnitOfWork, UnitOfWork


class SqlAlchemyUnitOfWork(UnitOfWork):
    """SQLAlchemy async unit of work; one session per ``async with`` block."""

    def __init__(self, session_factory: Callable[[], AsyncSession]) -> None:
        self._factory = session_factory
        self.session: Any = None

    async def __aenter__(self) -> "SqlAlchemyUnitOfWork":
        self.session = self._factory()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        try:
            await super().__aexit__(exc_type, exc_val, exc_tb)
        finally:
            await self.session.close()

    async def commit(self) -> None:
        await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()


class SqlAlchemyOutboxUnitOfWork(SqlAlchemyUnitOfWork, OutboxUnitOfWork):
    """Outbox stores bound to the unit of work's session.

    Producers run their business writes on ``uow.session`` so the mutation
    and the outbox rows commit or roll back together::

        async with SqlAlchemyOutboxUnitOfWork(session_factory) as uow:
            uow.session.add(order_row)
            await TransactionalOutbox(uow).publish("order", order_row.id, "order.captured", {...}, ["webhook"])
    """

    async def __aenter__(self) -> "SqlAlchemyOutboxUnitOfWork":
        await super().__aenter__()
        self.events = SqlAlchemyEventLog(self.session)
        self.entries = SqlAlchemyDispatchStore(self.session)
        self.dead_letters = SqlAlchemyDeadLetterStore(self.session)
        return self


__all__ = ["SqlAlchemyOutboxUnitOfWork", "SqlAlchemyUnitOfWork"]
