"""Testing fakes – in-memory doubles for kernel ports."""
from mp_outbox.kernel.time import FrozenClock
from mp_outbox.testing.fakes.clock import FakeClock
from mp_outbox.testing.fakes.metrics import FakeMetricsRegistry
from mp_outbox.testing.fakes.outbox import (
    InMemoryDeadLetterStore,
    InMemoryDispatchStore,
    InMemoryEventLog,
    InMemoryOutboxState,
    InMemoryOutboxUnitOfWork,
)
from mp_outbox.testing.fakes.sink import RecordingSink, ScriptedSink

__all__ = [
    "FakeClock",
    "FakeMetricsRegistry",
    "FrozenClock",
    "InMemoryDeadLetterStore",
    "InMemoryDispatchStore",
    "InMemoryEventLog",
    "InMemoryOutboxState",
    "InMemoryOutboxUnitOfWork",
    "RecordingSink",
    "ScriptedSink",
]
