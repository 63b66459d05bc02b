"""SQLAlchemy adapter – SqlAlchemyDispatchStore.

Claiming is a compare-and-set per candidate row::

    UPDATE domain_event_dispatches
       SET status = 'delivering', locked_by = :worker, locked_at = :now
     WHERE id = :id AND status IN ('pending', 'failed-retryable')
       AND locked_by IS NULL AND available_at <= :now

and only rows whose update reports ``rowcount == 1`` are returned.  On
PostgreSQL the candidate select additionally uses ``FOR UPDATE SKIP LOCKED``
so concurrent workers mostly pick disjoint rows to begin with.

Every other transition loads the row, applies the :class:`DispatchEntry`
state machine in Python and writes the result back with a guard on the
previous status and lease, so a worker whose lease was reclaimed cannot
overwrite newer state.
"""
from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import datetime
from typing import Any

from sqlalchemy import and_, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.expression import ColumnElement

from mp_outbox.adapters.sqlalchemy.models import DispatchEntryRow
from mp_outbox.kernel.errors import ConflictError, LeaseLostError, NotFoundError
from mp_outbox.kernel.outbox import CLAIMABLE_STATUSES, DispatchEntry, DispatchStatus, DispatchStore

_CLAIMABLE = sorted(status.value for status in CLAIMABLE_STATUSES)


def _matches(column: Any, value: Any) -> ColumnElement[bool]:
    return column.is_(None) if value is None else column == value


class SqlAlchemyDispatchStore(DispatchStore):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def _load_row(self, entry_id: str) -> DispatchEntryRow | None:
        stmt = (
            select(DispatchEntryRow)
            .where(DispatchEntryRow.id == entry_id)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def _fetch(self, stmt: Any) -> list[DispatchEntry]:
        result = await self._session.execute(stmt.execution_options(populate_existing=True))
        return [row.to_domain() for row in result.scalars().all()]

    async def get(self, entry_id: str) -> DispatchEntry | None:
        row = await self._load_row(entry_id)
        return row.to_domain() if row is not None else None

    async def find(self, domain_event_id: str, delivery_channel: str) -> DispatchEntry | None:
        entries = await self._fetch(
            select(DispatchEntryRow).where(
                DispatchEntryRow.domain_event_id == domain_event_id,
                DispatchEntryRow.delivery_channel == delivery_channel,
            )
        )
        return entries[0] if entries else None

    async def list_for_event(self, domain_event_id: str) -> list[DispatchEntry]:
        return await self._fetch(
            select(DispatchEntryRow)
            .where(DispatchEntryRow.domain_event_id == domain_event_id)
            .order_by(DispatchEntryRow.created_at.asc(), DispatchEntryRow.id.asc())
        )

    async def list_by_status(self, status: DispatchStatus, limit: int = 100) -> list[DispatchEntry]:
        return await self._fetch(
            select(DispatchEntryRow)
            .where(DispatchEntryRow.status == status.value)
            .order_by(DispatchEntryRow.created_at.asc(), DispatchEntryRow.id.asc())
            .limit(limit)
        )

    async def count_by_status(self) -> dict[DispatchStatus, int]:
        stmt = select(DispatchEntryRow.status, func.count()).group_by(DispatchEntryRow.status)
        counts = {status: 0 for status in DispatchStatus}
        for status, count in (await self._session.execute(stmt)).all():
            counts[DispatchStatus(status)] = int(count)
        return counts

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def add(self, entry: DispatchEntry) -> None:
        entry.check_invariants()
        try:
            async with self._session.begin_nested():
                self._session.add(DispatchEntryRow.from_domain(entry))
        except IntegrityError as exc:
            raise ConflictError(
                f"Dispatch entry for event '{entry.domain_event_id}' "
                f"on channel '{entry.delivery_channel}' already exists",
                cause=exc,
            ) from exc

    async def _select_candidates(
        self,
        batch_size: int,
        now: datetime,
        channels: Sequence[str] | None,
    ) -> list[str]:
        stmt = select(DispatchEntryRow.id).where(
            DispatchEntryRow.status.in_(_CLAIMABLE),
            DispatchEntryRow.locked_by.is_(None),
            DispatchEntryRow.available_at <= now,
        )
        if channels:
            stmt = stmt.where(DispatchEntryRow.delivery_channel.in_(list(channels)))
        stmt = (
            stmt.order_by(DispatchEntryRow.created_at.asc(), DispatchEntryRow.id.asc())
            .limit(batch_size)
            .with_for_update(skip_locked=True)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def claim(
        self,
        worker_id: str,
        batch_size: int,
        now: datetime,
        channels: Sequence[str] | None = None,
    ) -> list[DispatchEntry]:
        won: list[str] = []
        for entry_id in await self._select_candidates(batch_size, now, channels):
            stmt = (
                update(DispatchEntryRow)
                .where(
                    DispatchEntryRow.id == entry_id,
                    DispatchEntryRow.status.in_(_CLAIMABLE),
                    DispatchEntryRow.locked_by.is_(None),
                    DispatchEntryRow.available_at <= now,
                )
                .values(
                    {
                        DispatchEntryRow.status: DispatchStatus.DELIVERING.value,
                        DispatchEntryRow.locked_by: worker_id,
                        DispatchEntryRow.locked_at: now,
                        DispatchEntryRow.updated_at: now,
                    }
                )
                .execution_options(synchronize_session=False)
            )
            result = await self._session.execute(stmt)
            if result.rowcount == 1:
                won.append(entry_id)
        claimed: list[DispatchEntry] = []
        for entry_id in won:
            row = await self._load_row(entry_id)
            if row is not None:
                claimed.append(row.to_domain())
        return claimed

    async def _transition(
        self,
        entry_id: str,
        apply: Callable[[DispatchEntry], None],
        *,
        worker_id: str | None = None,
    ) -> DispatchEntry:
        """Apply *apply* to the stored entry and write it back if nobody raced us."""
        row = await self._load_row(entry_id)
        if row is None:
            raise NotFoundError("DispatchEntry", entry_id)
        entry = row.to_domain()
        guard = and_(
            DispatchEntryRow.id == entry_id,
            DispatchEntryRow.status == entry.status.value,
            _matches(DispatchEntryRow.locked_by, entry.locked_by),
            _matches(DispatchEntryRow.locked_at, entry.locked_at),
        )
        apply(entry)
        entry.check_invariants()
        stmt = (
            update(DispatchEntryRow)
            .where(guard)
            .values(DispatchEntryRow.values_from(entry))
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        if result.rowcount != 1:
            if worker_id is not None:
                raise LeaseLostError(entry_id, worker_id)
            raise ConflictError(f"Dispatch entry '{entry_id}' was modified concurrently", entry_id=entry_id)
        return entry

    async def mark_delivered(
        self,
        entry_id: str,
        worker_id: str,
        now: datetime,
        metadata: dict[str, Any] | None = None,
    ) -> DispatchEntry:
        return await self._transition(
            entry_id,
            lambda entry: entry.mark_delivered(worker_id, now, metadata),
            worker_id=worker_id,
        )

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
    ) -> DispatchEntry:
        return await self._transition(
            entry_id,
            lambda entry: entry.record_failure(
                worker_id,
                error,
                now,
                terminal=terminal,
                next_available_at=next_available_at,
                metadata=metadata,
            ),
            worker_id=worker_id,
        )

    async def cancel(self, entry_id: str, reason: str, now: datetime) -> DispatchEntry:
        return await self._transition(entry_id, lambda entry: entry.cancel(reason, now))

    async def reclaim_expired(self, cutoff: datetime, now: datetime) -> list[DispatchEntry]:
        stmt = (
            select(DispatchEntryRow.id)
            .where(
                DispatchEntryRow.status == DispatchStatus.DELIVERING.value,
                DispatchEntryRow.locked_at <= cutoff,
            )
            .order_by(DispatchEntryRow.created_at.asc(), DispatchEntryRow.id.asc())
            .with_for_update(skip_locked=True)
        )
        expired = list((await self._session.execute(stmt)).scalars().all())
        reclaimed: list[DispatchEntry] = []
        for entry_id in expired:
            try:
                reclaimed.append(await self._transition(entry_id, lambda entry: entry.release(now)))
            except (ConflictError, NotFoundError):
                # Settled or reclaimed by someone else since the select.
                continue
        return reclaimed


__all__ = ["SqlAlchemyDispatchStore"]
