"""
mp_outbox – Transactional outbox and reliable dispatch queue.

Import path convention::

    from mp_outbox.kernel.outbox import DomainEvent, DispatchEntry, DispatchStatus
    from mp_outbox.application.outbox import TransactionalOutbox, DispatchWorker
    from mp_outbox.adapters.sqlalchemy import SqlAlchemyOutboxUnitOfWork
    from mp_outbox.testing.fakes import InMemoryOutboxState, InMemoryOutboxUnitOfWork
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
