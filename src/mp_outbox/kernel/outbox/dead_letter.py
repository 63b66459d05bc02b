"""Kernel outbox – dead-letter records for entries that failed for good."""
from __future__ import annotations

import dataclasses
from datetime import datetime
from typing import Any
from uuid import uuid4

from mp_outbox.kernel.time import utc_now


@dataclasses.dataclass(frozen=True)
class DeadLetterEntry:
    """Operator-facing snapshot of a dispatch that reached ``failed-terminal``."""

    dispatch_id: str
    event_id: str
    event_type: str
    delivery_channel: str
    attempts: int
    failure_reason: str
    failure_message: str
    event_payload: dict[str, Any] = dataclasses.field(default_factory=dict)
    metadata: dict[str, Any] = dataclasses.field(default_factory=dict)
    id: str = dataclasses.field(default_factory=lambda: str(uuid4()))
    failed_at: datetime = dataclasses.field(default_factory=utc_now)


__all__ = ["DeadLetterEntry"]
