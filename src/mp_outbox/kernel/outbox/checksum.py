"""Kernel outbox – payload fingerprints used to collapse duplicate enqueues."""
from __future__ import annotations

import hashlib
import json
from typing import Any

from mp_outbox.kernel.errors import SerializationError
from mp_outbox.kernel.outbox.event import DomainEvent


def canonical_json(value: Any) -> str:
    """Stable serialization: sorted keys, compact separators, UTF-8 preserved."""
    try:
        return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    except (TypeError, ValueError) as exc:
        raise SerializationError(
            f"Payload is not JSON-serializable: {exc}",
            payload_type=type(value).__name__,
            cause=exc,
        ) from exc


def payload_checksum(event: DomainEvent, channel: str) -> str:
    """SHA-256 hex digest over the event identity, the channel and the payload."""
    document = {
        "event_id": event.id,
        "channel": channel,
        "entity_type": event.entity_type,
        "entity_id": event.entity_id,
        "event_type": event.event_type,
        "payload": event.payload,
    }
    return hashlib.sha256(canonical_json(document).encode("utf-8")).hexdigest()


__all__ = ["canonical_json", "payload_checksum"]
