"""Application outbox – producer side, leasing, dispatch, recovery and the worker loop."""
from mp_outbox.application.outbox.dispatcher import EVENT_LOAD_RETRY_DELAY, Dispatcher
from mp_outbox.application.outbox.enqueuer import Enqueuer
from mp_outbox.application.outbox.lease import LeaseManager
from mp_outbox.application.outbox.metrics import DispatchMetrics
from mp_outbox.application.outbox.producer import Publication, TransactionalOutbox
from mp_outbox.application.outbox.reclaimer import Reclaimer
from mp_outbox.application.outbox.recorder import EventRecorder
from mp_outbox.application.outbox.worker import DispatchWorker, default_worker_id

__all__ = [
    "DispatchMetrics",
    "DispatchWorker",
    "Dispatcher",
    "EVENT_LOAD_RETRY_DELAY",
    "Enqueuer",
    "EventRecorder",
    "LeaseManager",
    "Publication",
    "Reclaimer",
    "TransactionalOutbox",
    "default_worker_id",
]
