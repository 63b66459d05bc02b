"""SQLAlchemy adapter – outbox tables, stores and unit of work."""
from mp_outbox.adapters.sqlalchemy.dead_letter import SqlAlchemyDeadLetterStore
from mp_outbox.adapters.sqlalchemy.dispatch_store import SqlAlchemyDispatchStore
from mp_outbox.adapters.sqlalchemy.event_log import SqlAlchemyEventLog
from mp_outbox.adapters.sqlalchemy.models import (
    DeadLetterRow,
    DispatchEntryRow,
    DomainEventRow,
    OutboxBase,
    UtcDateTime,
    create_outbox_tables,
    drop_outbox_tables,
)
from mp_outbox.adapters.sqlalchemy.session import SqlAlchemySessionFactory
from mp_outbox.adapters.sqlalchemy.uow import SqlAlchemyOutboxUnitOfWork, SqlAlchemyUnitOfWork

__all__ = [
    "DeadLetterRow",
    "DispatchEntryRow",
    "DomainEventRow",
    "OutboxBase",
    "SqlAlchemyDeadLetterStore",
    "SqlAlchemyDispatchStore",
    "SqlAlchemyEventLog",
    "SqlAlchemyOutboxUnitOfWork",
    "SqlAlchemySessionFactory",
    "SqlAlchemyUnitOfWork",
    "UtcDateTime",
    "create_outbox_tables",
    "drop_outbox_tables",
]
