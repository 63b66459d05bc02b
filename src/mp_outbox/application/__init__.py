"""Application layer – outbox use cases."""
from mp_outbox.application.outbox import (
    DispatchMetrics,
    DispatchWorker,
    Dispatcher,
    Enqueuer,
    EventRecorder,
    LeaseManager,
    Publication,
    Reclaimer,
    TransactionalOutbox,
)

__all__ = [
    "DispatchMetrics",
    "DispatchWorker",
    "Dispatcher",
    "Enqueuer",
    "EventRecorder",
    "LeaseManager",
    "Publication",
    "Reclaimer",
    "TransactionalOutbox",
]
