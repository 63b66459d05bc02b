"""Kernel outbox – DomainEvent, the immutable record of "what happened"."""
from __future__ import annotations

import dataclasses
from datetime import datetime
from typing import Any
from uuid import uuid4

from mp_outbox.kernel.errors import ValidationError
from mp_outbox.kernel.time import utc_now


@dataclasses.dataclass(frozen=True)
class DomainEvent:
    """Entity *entity_id* of type *entity_type* underwent *event_type*.

    Appended exactly once, inside the same transaction as the business
    mutation it documents, and never updated or deleted afterwards.
    ``payload`` is opaque to the queue; it only has to be JSON-compatible so
    it can be fingerprinted and handed to sinks.
    """

    entity_type: str
    entity_id: str
    event_type: str
    payload: dict[str, Any] = dataclasses.field(default_factory=dict)
    performed_by: str | None = None
    id: str = dataclasses.field(default_factory=lambda: str(uuid4()))
    occurred_at: datetime = dataclasses.field(default_factory=utc_now)
    trace_id: str | None = None
    correlation_id: str | None = None

    def __post_init__(self) -> None:
        missing = [
            {"field": name, "error": "must not be empty"}
            for name in ("entity_type", "entity_id", "event_type")
            if not getattr(self, name)
        ]
        if missing:
            raise ValidationError("DomainEvent is missing required fields", errors=missing)


__all__ = ["DomainEvent"]
