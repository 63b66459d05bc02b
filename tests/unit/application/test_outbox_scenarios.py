"""End-to-end outbox scenarios over the in-memory stores."""

from __future__ import annotations

import asyncio
from datetime import timedelta

from mp_outbox.application.outbox import Dispatcher, LeaseManager, Reclaimer
from mp_outbox.kernel.outbox import (
    DeliveryResult,
    DispatchEntry,
    DispatchOutcome,
    DispatchStatus,
    OutboxUnitOfWorkFactory,
    OutcomeKind,
    SinkRegistry,
)
from mp_outbox.kernel.time import FrozenClock
from mp_outbox.resilience.retry import DispatchRetryPolicy, NoJitter
from mp_outbox.testing.fakes import InMemoryOutboxState, ScriptedSink


def _entry(state: InMemoryOutboxState, entry_id: str) -> DispatchEntry:
    return {e.id: e for e in state.all_entries()}[entry_id]


class TestOutboxScenarios:
    def test_timeout_then_success(
        self,
        publish,  # type: ignore[no-untyped-def]
        uow_factory: OutboxUnitOfWorkFactory,
        outbox_state: InMemoryOutboxState,
        fake_clock: FrozenClock,
    ) -> None:
        """order.captured times out once, is retried after backoff and lands."""
        sink = ScriptedSink([ScriptedSink.HANG, None])
        leases = LeaseManager(uow_factory, fake_clock)
        dispatcher = Dispatcher(
            uow_factory,
            SinkRegistry({"webhook": sink}),
            retry_policy=DispatchRetryPolicy(jitter=NoJitter()),
            clock=fake_clock,
            delivery_timeout=0.05,
        )

        async def run() -> tuple[str, list[DispatchOutcome], list[DispatchEntry]]:
            publication = await publish(payload={"order_id": "ord-1", "total": "12.50"})
            outcomes = [await dispatcher.dispatch((await leases.claim("w1", 1))[0])]
            not_yet = await leases.claim("w1", 1)
            fake_clock.advance(seconds=30)
            outcomes.append(await dispatcher.dispatch((await leases.claim("w1", 1))[0]))
            return publication.entries[0].id, outcomes, not_yet

        entry_id, outcomes, not_yet = asyncio.run(run())
        assert [o.kind for o in outcomes] == [OutcomeKind.RETRY_SCHEDULED, OutcomeKind.DELIVERED]
        assert not_yet == []
        stored = _entry(outbox_state, entry_id)
        assert stored.status == DispatchStatus.DELIVERED
        assert stored.attempts == 1
        assert [p.attempt for p in sink.payloads] == [1, 2]
        assert outbox_state.dead_letters == []

    def test_budget_exhausted_after_retries(
        self,
        publish,  # type: ignore[no-untyped-def]
        uow_factory: OutboxUnitOfWorkFactory,
        outbox_state: InMemoryOutboxState,
        fake_clock: FrozenClock,
    ) -> None:
        """A channel that keeps failing is dead-lettered on the third attempt."""
        sink = ScriptedSink([DeliveryResult.retryable("upstream 503")] * 3)
        leases = LeaseManager(uow_factory, fake_clock)
        dispatcher = Dispatcher(uow_factory, SinkRegistry({"webhook": sink}), clock=fake_clock)

        async def run() -> list[DispatchOutcome]:
            await publish(max_attempts=3)
            outcomes: list[DispatchOutcome] = []
            for _ in range(3):
                (entry,) = await leases.claim("w1", 1)
                outcomes.append(await dispatcher.dispatch(entry))
                fake_clock.advance(hours=1)
            assert await leases.claim("w1", 1) == []
            return outcomes

        outcomes = asyncio.run(run())
        assert [o.kind for o in outcomes] == [
            OutcomeKind.RETRY_SCHEDULED,
            OutcomeKind.RETRY_SCHEDULED,
            OutcomeKind.FAILED_TERMINAL,
        ]
        assert [o.attempts for o in outcomes] == [1, 2, 3]
        stored = _entry(outbox_state, outcomes[-1].entry_id)
        assert stored.status == DispatchStatus.FAILED_TERMINAL
        assert stored.attempts == stored.max_attempts == 3
        (dead,) = outbox_state.dead_letters
        assert dead.attempts == 3
        assert dead.failure_reason == "delivery_retryable"

    def test_crashed_worker_is_recovered(
        self,
        publish,  # type: ignore[no-untyped-def]
        uow_factory: OutboxUnitOfWorkFactory,
        outbox_state: InMemoryOutboxState,
        fake_clock: FrozenClock,
    ) -> None:
        """A worker dies mid-delivery; its lease expires and a peer delivers."""
        sink = ScriptedSink()
        leases = LeaseManager(uow_factory, fake_clock)
        reclaimer = Reclaimer(uow_factory, fake_clock, lease_timeout=timedelta(minutes=10))
        dispatcher = Dispatcher(uow_factory, SinkRegistry({"webhook": sink}), clock=fake_clock)

        async def run() -> tuple[int, int, DispatchOutcome]:
            await publish()
            await leases.claim("crashed-worker", 1)
            fake_clock.advance(minutes=5)
            early = await reclaimer.reclaim_expired_leases()
            fake_clock.advance(minutes=5)
            reclaimed = await reclaimer.reclaim_expired_leases()
            (entry,) = await leases.claim("w2", 1)
            return early, reclaimed, await dispatcher.dispatch(entry)

        early, reclaimed, outcome = asyncio.run(run())
        assert (early, reclaimed) == (0, 1)
        assert outcome.kind == OutcomeKind.DELIVERED
        stored = _entry(outbox_state, outcome.entry_id)
        assert stored.attempts == 0
        assert stored.status == DispatchStatus.DELIVERED
        assert len(sink.deliveries) == 1
