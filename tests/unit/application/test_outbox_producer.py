"""Unit tests for EventRecorder, Enqueuer and TransactionalOutbox."""

from __future__ import annotations

import asyncio

import pytest

from mp_outbox.application.outbox import Enqueuer, EventRecorder, TransactionalOutbox
from mp_outbox.kernel.errors import ConflictError, SerializationError, ValidationError
from mp_outbox.kernel.outbox import (
    DispatchEntry,
    DispatchStatus,
    DomainEvent,
    payload_checksum,
)
from mp_outbox.kernel.time import FrozenClock
from mp_outbox.observability.correlation import CorrelationContext, RequestContext
from mp_outbox.testing.fakes import (
    InMemoryDispatchStore,
    InMemoryEventLog,
    InMemoryOutboxState,
    InMemoryOutboxUnitOfWork,
)


def _event(**kwargs) -> DomainEvent:  # type: ignore[no-untyped-def]
    defaults = dict(entity_type="order", entity_id="ord-1", event_type="order.captured", payload={"total": "12.50"})
    defaults.update(kwargs)
    return DomainEvent(**defaults)


# ---------------------------------------------------------------------------
# EventRecorder
# ---------------------------------------------------------------------------


class TestEventRecorder:
    def test_record_appends_event(self, fake_clock: FrozenClock) -> None:
        state = InMemoryOutboxState()
        recorder = EventRecorder(InMemoryEventLog(state), fake_clock)
        event = asyncio.run(recorder.record("order", "ord-1", "order.captured", {"total": "12.50"}, "user-7"))
        assert state.events[event.id] is event
        assert event.occurred_at == fake_clock.now()
        assert event.performed_by == "user-7"
        assert event.payload == {"total": "12.50"}

    def test_payload_defaults_to_empty(self, fake_clock: FrozenClock) -> None:
        recorder = EventRecorder(InMemoryEventLog(), fake_clock)
        event = asyncio.run(recorder.record("order", "ord-1", "order.created"))
        assert event.payload == {}

    def test_falls_back_to_correlation_context(self, fake_clock: FrozenClock) -> None:
        recorder = EventRecorder(InMemoryEventLog(), fake_clock)

        async def run() -> DomainEvent:
            with CorrelationContext.bind(RequestContext("corr-1", trace_id="trace-1", user_id="user-1")):
                return await recorder.record("order", "ord-1", "order.captured")

        event = asyncio.run(run())
        assert event.correlation_id == "corr-1"
        assert event.trace_id == "trace-1"
        assert event.performed_by == "user-1"

    def test_explicit_ids_win_over_context(self, fake_clock: FrozenClock) -> None:
        recorder = EventRecorder(InMemoryEventLog(), fake_clock)

        async def run() -> DomainEvent:
            with CorrelationContext.bind(RequestContext("corr-1", trace_id="trace-1")):
                return await recorder.record(
                    "order", "ord-1", "order.captured", correlation_id="mine", trace_id="t-mine"
                )

        event = asyncio.run(run())
        assert (event.correlation_id, event.trace_id) == ("mine", "t-mine")

    def test_unserializable_payload_rejected(self, fake_clock: FrozenClock) -> None:
        state = InMemoryOutboxState()
        recorder = EventRecorder(InMemoryEventLog(state), fake_clock)
        with pytest.raises(SerializationError):
            asyncio.run(recorder.record("order", "ord-1", "order.captured", {"at": object()}))
        assert state.events == {}

    def test_missing_identity_rejected(self, fake_clock: FrozenClock) -> None:
        recorder = EventRecorder(InMemoryEventLog(), fake_clock)
        with pytest.raises(ValidationError):
            asyncio.run(recorder.record("order", "", "order.captured"))

    def test_rollback_discards_event(self, outbox_state: InMemoryOutboxState, fake_clock: FrozenClock) -> None:
        async def run() -> None:
            async with InMemoryOutboxUnitOfWork(outbox_state) as uow:
                await EventRecorder(uow.events, fake_clock).record("order", "ord-1", "order.captured")
                raise RuntimeError("business mutation failed")

        with pytest.raises(RuntimeError):
            asyncio.run(run())
        assert outbox_state.events == {}

    def test_list_for_entity_oldest_first(self, fake_clock: FrozenClock) -> None:
        log = InMemoryEventLog()
        recorder = EventRecorder(log, fake_clock)

        async def run() -> list[str]:
            await recorder.record("order", "ord-1", "order.created")
            fake_clock.advance(seconds=5)
            await recorder.record("order", "ord-1", "order.captured")
            await recorder.record("order", "ord-2", "order.created")
            return [e.event_type for e in await log.list_for_entity("order", "ord-1")]

        assert asyncio.run(run()) == ["order.created", "order.captured"]


# ---------------------------------------------------------------------------
# Enqueuer
# ---------------------------------------------------------------------------


class TestEnqueuer:
    def test_one_pending_entry_per_channel(self, fake_clock: FrozenClock) -> None:
        store = InMemoryDispatchStore()
        event = _event(correlation_id="corr-1", trace_id="trace-1")
        entries = asyncio.run(Enqueuer(store, fake_clock).enqueue(event, ["webhook", "analytics"]))
        assert [e.delivery_channel for e in entries] == ["webhook", "analytics"]
        for entry in entries:
            assert entry.status == DispatchStatus.PENDING
            assert entry.attempts == 0
            assert entry.max_attempts == 8
            assert entry.available_at == fake_clock.now()
            assert entry.locked_by is None
            assert entry.correlation_id == "corr-1"
            assert entry.trace_id == "trace-1"
            assert entry.payload_checksum == payload_checksum(event, entry.delivery_channel)

    def test_re_enqueue_is_idempotent(self, fake_clock: FrozenClock) -> None:
        state = InMemoryOutboxState()
        enqueuer = Enqueuer(InMemoryDispatchStore(state), fake_clock)
        event = _event()

        async def run() -> tuple[list[DispatchEntry], list[DispatchEntry]]:
            first = await enqueuer.enqueue(event, ["webhook"])
            second = await enqueuer.enqueue(event, ["webhook"])
            return first, second

        first, second = asyncio.run(run())
        assert first[0].id == second[0].id
        assert len(state.entries) == 1

    def test_duplicate_channels_collapse(self, fake_clock: FrozenClock) -> None:
        entries = asyncio.run(
            Enqueuer(InMemoryDispatchStore(), fake_clock).enqueue(_event(), ["webhook", "webhook", "analytics"])
        )
        assert [e.delivery_channel for e in entries] == ["webhook", "analytics"]

    def test_no_channels_enqueues_nothing(self, fake_clock: FrozenClock) -> None:
        assert asyncio.run(Enqueuer(InMemoryDispatchStore(), fake_clock).enqueue(_event(), [])) == []

    def test_overrides(self, fake_clock: FrozenClock) -> None:
        entries = asyncio.run(
            Enqueuer(InMemoryDispatchStore(), fake_clock).enqueue(
                _event(), ["webhook"], max_attempts=3, dry_run=True, metadata={"tenant": "acme"}
            )
        )
        assert entries[0].max_attempts == 3
        assert entries[0].dry_run is True
        assert entries[0].metadata == {"tenant": "acme"}

    def test_default_max_attempts(self, fake_clock: FrozenClock) -> None:
        entries = asyncio.run(
            Enqueuer(InMemoryDispatchStore(), fake_clock, default_max_attempts=5).enqueue(_event(), ["webhook"])
        )
        assert entries[0].max_attempts == 5

    @pytest.mark.parametrize("max_attempts", [0, -1])
    def test_invalid_budget(self, fake_clock: FrozenClock, max_attempts: int) -> None:
        enqueuer = Enqueuer(InMemoryDispatchStore(), fake_clock)
        with pytest.raises(ValidationError) as exc_info:
            asyncio.run(enqueuer.enqueue(_event(), ["webhook"], max_attempts=max_attempts))
        assert exc_info.value.errors[0]["field"] == "max_attempts"

    def test_invalid_default_budget(self) -> None:
        with pytest.raises(ValidationError):
            Enqueuer(InMemoryDispatchStore(), default_max_attempts=0)

    def test_empty_channel_rejected(self, fake_clock: FrozenClock) -> None:
        store = InMemoryDispatchStore()
        with pytest.raises(ValidationError):
            asyncio.run(Enqueuer(store, fake_clock).enqueue(_event(), ["webhook", ""]))

    def test_checksum_mismatch_conflicts(self, fake_clock: FrozenClock) -> None:
        store = InMemoryDispatchStore()
        event = _event()

        async def run() -> None:
            await store.add(
                DispatchEntry(
                    domain_event_id=event.id,
                    delivery_channel="webhook",
                    payload_checksum="stale-checksum",
                )
            )
            await Enqueuer(store, fake_clock).enqueue(event, ["webhook"])

        with pytest.raises(ConflictError):
            asyncio.run(run())

    def test_lost_insert_race_returns_winner(self, fake_clock: FrozenClock) -> None:
        class RacingStore(InMemoryDispatchStore):
            """Misses the existing row on the first lookup, as a concurrent producer would."""

            def __init__(self) -> None:
                super().__init__()
                self.finds = 0

            async def find(self, domain_event_id: str, delivery_channel: str) -> DispatchEntry | None:
                self.finds += 1
                if self.finds == 1:
                    return None
                return await super().find(domain_event_id, delivery_channel)

        store = RacingStore()
        event = _event()
        winner = DispatchEntry(
            domain_event_id=event.id,
            delivery_channel="webhook",
            payload_checksum=payload_checksum(event, "webhook"),
        )

        async def run() -> list[DispatchEntry]:
            await store.add(winner)
            return await Enqueuer(store, fake_clock).enqueue(event, ["webhook"])

        entries = asyncio.run(run())
        assert [e.id for e in entries] == [winner.id]
        assert store.finds == 2


# ---------------------------------------------------------------------------
# TransactionalOutbox
# ---------------------------------------------------------------------------


class TestTransactionalOutbox:
    def test_publish_records_and_enqueues(self, outbox_state: InMemoryOutboxState, fake_clock: FrozenClock) -> None:
        async def run():  # type: ignore[no-untyped-def]
            async with InMemoryOutboxUnitOfWork(outbox_state) as uow:
                return await TransactionalOutbox(uow, fake_clock).publish(
                    "order",
                    "ord-1",
                    "order.captured",
                    {"total": "12.50"},
                    ["webhook", "analytics"],
                    performed_by="user-7",
                    correlation_id="corr-9",
                )

        publication = asyncio.run(run())
        assert publication.event.id in outbox_state.events
        assert {e.delivery_channel for e in publication.entries} == {"webhook", "analytics"}
        assert all(e.domain_event_id == publication.event.id for e in publication.entries)
        assert all(e.correlation_id == "corr-9" for e in publication.entries)
        assert len(outbox_state.entries) == 2

    def test_rollback_discards_event_and_entries(
        self,
        outbox_state: InMemoryOutboxState,
        fake_clock: FrozenClock,
    ) -> None:
        async def run() -> None:
            async with InMemoryOutboxUnitOfWork(outbox_state) as uow:
                await TransactionalOutbox(uow, fake_clock).publish(
                    "order", "ord-1", "order.captured", channels=["webhook"]
                )
                raise RuntimeError("business mutation failed")

        with pytest.raises(RuntimeError):
            asyncio.run(run())
        assert outbox_state.events == {}
        assert outbox_state.entries == {}

    def test_record_then_enqueue_separately(self, outbox_state: InMemoryOutboxState, fake_clock: FrozenClock) -> None:
        async def run() -> list[DispatchEntry]:
            async with InMemoryOutboxUnitOfWork(outbox_state) as uow:
                outbox = TransactionalOutbox(uow, fake_clock, default_max_attempts=2)
                event = await outbox.record("order", "ord-1", "order.refunded")
                return await outbox.enqueue(event, ["webhook"])

        entries = asyncio.run(run())
        assert entries[0].max_attempts == 2
