"""Testing – in-memory fakes and pytest fixtures for outbox consumers' test suites."""
from mp_outbox.testing.fakes import (
    FakeClock,
    FakeMetricsRegistry,
    InMemoryOutboxState,
    InMemoryOutboxUnitOfWork,
    RecordingSink,
    ScriptedSink,
)

__all__ = [
    "FakeClock",
    "FakeMetricsRegistry",
    "InMemoryOutboxState",
    "InMemoryOutboxUnitOfWork",
    "RecordingSink",
    "ScriptedSink",
]
