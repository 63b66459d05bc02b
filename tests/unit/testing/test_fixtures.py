"""Unit tests for the pytest fixtures shipped in mp_outbox.testing.fixtures."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta

from mp_outbox.kernel.outbox import OutboxUnitOfWorkFactory, SinkRegistry
from mp_outbox.kernel.time import FrozenClock
from mp_outbox.testing.fakes import (
    FakeMetricsRegistry,
    InMemoryOutboxState,
    InMemoryOutboxUnitOfWork,
    RecordingSink,
)

# ---------------------------------------------------------------------------
# fake_clock
# ---------------------------------------------------------------------------


class TestFakeClockFixture:
    def test_returns_frozen_clock(self, fake_clock: FrozenClock) -> None:
        assert isinstance(fake_clock, FrozenClock)

    def test_pinned_start(self, fake_clock: FrozenClock) -> None:
        assert fake_clock.now() == datetime(2026, 1, 1, 12, 0, tzinfo=UTC)

    def test_frozen_in_time(self, fake_clock: FrozenClock) -> None:
        assert fake_clock.now() == fake_clock.now()

    def test_advance_works(self, fake_clock: FrozenClock) -> None:
        t0 = fake_clock.now()
        fake_clock.advance(minutes=10)
        assert fake_clock.now() - t0 == timedelta(minutes=10)


# ---------------------------------------------------------------------------
# outbox fixtures
# ---------------------------------------------------------------------------


class TestOutboxFixtures:
    def test_uow_factory_shares_state(
        self,
        uow_factory: OutboxUnitOfWorkFactory,
        outbox_state: InMemoryOutboxState,
    ) -> None:
        uow = uow_factory()
        assert isinstance(uow, InMemoryOutboxUnitOfWork)
        assert uow._state is outbox_state
        assert uow_factory() is not uow

    def test_sink_registry_channels(self, sink_registry: SinkRegistry, recording_sink: RecordingSink) -> None:
        assert sink_registry.channels == ["analytics", "webhook"]
        assert sink_registry.resolve("webhook") is recording_sink

    def test_fake_metrics_starts_empty(self, fake_metrics: FakeMetricsRegistry) -> None:
        assert fake_metrics.counter("anything").call_count == 0

    def test_publish_helper_commits(self, publish, outbox_state: InMemoryOutboxState) -> None:  # type: ignore[no-untyped-def]
        publication = asyncio.run(publish(["webhook"]))
        assert publication.event.id in outbox_state.events
        assert len(outbox_state.entries) == 1
