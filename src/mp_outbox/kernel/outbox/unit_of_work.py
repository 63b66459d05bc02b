"""Kernel outbox – unit of work spanning the event log, queue and dead letters."""

from __future__ import annotations

import abc
from collections.abc import Callable
from typing import Any

from mp_outbox.kernel.outbox.ports import DeadLetterStore, DispatchStore, EventLog


class UnitOfWork(abc.ABC):
    """Port: transactional unit of work.

    Leaving the ``async with`` block commits; an exception rolls back.
    """

    @abc.abstractmethod
    async def commit(self) -> None: ...

    @abc.abstractmethod
    async def rollback(self) -> None: ...

    async def __aenter__(self) -> "UnitOfWork":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        if exc_type is None:
            await self.commit()
        else:
            await self.rollback()


class OutboxUnitOfWork(UnitOfWork):
    """Unit of work exposing the three outbox stores bound to one transaction.

    Producers record events and enqueue entries through the same unit of
    work as their business mutation, which is what makes the outbox
    transactional.
    """

    events: EventLog
    entries: DispatchStore
    dead_letters: DeadLetterStore

    async def __aenter__(self) -> "OutboxUnitOfWork":
        return self


type OutboxUnitOfWorkFactory = Callable[[], OutboxUnitOfWork]


__all__ = ["OutboxUnitOfWork", "OutboxUnitOfWorkFactory", "UnitOfWork"]
