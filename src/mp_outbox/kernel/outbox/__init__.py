"""Kernel outbox – domain events, dispatch entries, sinks and ports."""
from mp_outbox.kernel.outbox.checksum import canonical_json, payload_checksum
from mp_outbox.kernel.outbox.dead_letter import DeadLetterEntry
from mp_outbox.kernel.outbox.entry import (
    CLAIMABLE_STATUSES,
    DispatchEntry,
    DispatchOutcome,
    DispatchStatus,
    OutcomeKind,
)
from mp_outbox.kernel.outbox.event import DomainEvent
from mp_outbox.kernel.outbox.ports import DeadLetterStore, DispatchStore, EventLog
from mp_outbox.kernel.outbox.sink import (
    DeliveryPayload,
    DeliveryResult,
    DeliverySink,
    DeliveryStatus,
    SinkRegistry,
)
from mp_outbox.kernel.outbox.unit_of_work import OutboxUnitOfWork, OutboxUnitOfWorkFactory, UnitOfWork

__all__ = [
    "CLAIMABLE_STATUSES",
    "DeadLetterEntry",
    "DeadLetterStore",
    "DeliveryPayload",
    "DeliveryResult",
    "DeliverySink",
    "DeliveryStatus",
    "DispatchEntry",
    "DispatchOutcome",
    "DispatchStatus",
    "DispatchStore",
    "DomainEvent",
    "EventLog",
    "OutboxUnitOfWork",
    "OutboxUnitOfWorkFactory",
    "OutcomeKind",
    "SinkRegistry",
    "UnitOfWork",
    "canonical_json",
    "payload_checksum",
]
