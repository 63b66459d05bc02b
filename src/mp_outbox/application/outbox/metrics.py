"""Application outbox – DispatchMetrics instruments."""
from __future__ import annotations

from collections.abc import Mapping

from mp_outbox.kernel.outbox import DispatchOutcome, DispatchStatus, OutcomeKind
from mp_outbox.observability.metrics import Metrics, NoopMetrics


class DispatchMetrics:
    """Named instruments for the dispatch pipeline on top of a :class:`Metrics` backend."""

    def __init__(self, metrics: Metrics | None = None) -> None:
        backend = metrics or NoopMetrics()
        self.attempts = backend.counter(
            "outbox_dispatch_attempts_total", "Dispatch attempts by outcome"
        )
        self.duration = backend.histogram(
            "outbox_dispatch_duration_seconds", "Wall time of one dispatch", unit="s"
        )
        self.failures = backend.counter(
            "outbox_dispatch_failures_total", "Failed dispatch attempts"
        )
        self.queue_depth = backend.gauge(
            "outbox_dispatch_queue_depth", "Entries waiting to be dispatched"
        )
        self.dead_letters = backend.gauge(
            "outbox_dead_letters_total", "Entries that reached failed-terminal through delivery"
        )
        self.reclaimed = backend.counter(
            "outbox_leases_reclaimed_total", "Expired leases returned to pending"
        )

    def record_dispatch(self, event_type: str, outcome: DispatchOutcome, seconds: float) -> None:
        labels = {"event_type": event_type, "outcome": outcome.kind.value}
        self.attempts.add(1, labels)
        self.duration.record(seconds, labels)
        if outcome.kind in (OutcomeKind.RETRY_SCHEDULED, OutcomeKind.FAILED_TERMINAL):
            terminal = outcome.kind == OutcomeKind.FAILED_TERMINAL
            self.failures.add(1, {"event_type": event_type, "terminal": "yes" if terminal else "no"})

    def record_queue_depth(self, counts: Mapping[DispatchStatus, int]) -> None:
        for status in (DispatchStatus.PENDING, DispatchStatus.FAILED_RETRYABLE):
            self.queue_depth.set(counts.get(status, 0), {"status": status.value})

    def record_dead_letters(self, count: int) -> None:
        self.dead_letters.set(count)

    def record_reclaimed(self, count: int) -> None:
        if count:
            self.reclaimed.add(count)


__all__ = ["DispatchMetrics"]
