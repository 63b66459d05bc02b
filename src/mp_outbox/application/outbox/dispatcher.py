"""Application outbox – Dispatcher.

Delivers one claimed entry to its channel's sink and settles the outcome::

    result of sink.deliver()              entry afterwards
    ─────────────────────────────────     ──────────────────────────────────────────
    None / DeliveryResult.success()       delivered
    DeliveryResult.retryable(), timeout,  failed-retryable after backoff, or
      RetryableDeliveryError, any other     failed-terminal once attempts reach the
      exception                             budget
    DeliveryResult.terminal(),            failed-terminal
      TerminalDeliveryError, no sink

Every ``failed-terminal`` outcome writes a dead letter in the same unit of
work as the transition.  Settling is a guarded update: a worker whose lease
was reclaimed or cancelled gets a ``lease-lost`` outcome and leaves the newer
state alone.  The lease is re-checked before the sink is called.

Two failures outside the sink still count as an attempt so the budget holds:
an event that cannot be loaded (``event_load_failed``, retried after a fixed
delay) and a settle write that keeps failing after the persistence retries
(``settle_failed``, recorded without the sink's metadata).
"""
from __future__ import annotations

import json
import time
from collections.abc import Awaitable, Callable, Mapping
from datetime import datetime, timedelta
from typing import Any

from mp_outbox.application.outbox.metrics import DispatchMetrics
from mp_outbox.kernel.errors import (
    BaseError,
    DomainError,
    LeaseLostError,
    SinkNotFoundError,
    TerminalDeliveryError,
)
from mp_outbox.kernel.outbox import (
    DeadLetterEntry,
    DeliveryPayload,
    DeliveryResult,
    DeliveryStatus,
    DispatchEntry,
    DispatchOutcome,
    DispatchStatus,
    DomainEvent,
    OutboxUnitOfWork,
    OutboxUnitOfWorkFactory,
    OutcomeKind,
    SinkRegistry,
)
from mp_outbox.kernel.time import Clock, SystemClock
from mp_outbox.observability.correlation import CorrelationContext, RequestContext
from mp_outbox.observability.logging import get_logger
from mp_outbox.resilience.retry import DispatchRetryPolicy, TenacityRetryPolicy
from mp_outbox.resilience.timeouts import TimeoutPolicy

logger = get_logger(__name__)

_UNKNOWN_EVENT_TYPE = "unknown"
EVENT_LOAD_RETRY_DELAY = timedelta(seconds=60)


def _describe(exc: BaseException) -> str:
    return f"{type(exc).__name__}: {exc}"


def _storable(metadata: Mapping[str, Any] | None) -> dict[str, Any]:
    """Sink metadata as it will read back from a JSON column.

    Values JSON cannot encode (UUIDs, datetimes, decimals) are stringified;
    metadata that still cannot be encoded is dropped.
    """
    if not metadata:
        return {}
    try:
        return json.loads(json.dumps(dict(metadata), default=str))
    except (TypeError, ValueError):
        logger.warning("outbox.dispatch.metadata_dropped", keys=sorted(map(str, metadata)))
        return {}


class Dispatcher:
    """Delivers claimed dispatch entries through the per-channel sink registry."""

    def __init__(
        self,
        uow_factory: OutboxUnitOfWorkFactory,
        sinks: SinkRegistry,
        *,
        retry_policy: DispatchRetryPolicy | None = None,
        clock: Clock | None = None,
        delivery_timeout: float | None = 30.0,
        metrics: DispatchMetrics | None = None,
        persistence_retry: TenacityRetryPolicy | None = None,
    ) -> None:
        self._uow_factory = uow_factory
        self._sinks = sinks
        self._retry_policy = retry_policy or DispatchRetryPolicy()
        self._clock = clock or SystemClock()
        self._timeout = TimeoutPolicy(delivery_timeout)
        self._metrics = metrics or DispatchMetrics()
        self._persistence_retry = persistence_retry or TenacityRetryPolicy()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def dispatch(self, entry: DispatchEntry) -> DispatchOutcome:
        """Deliver *entry* (which must be leased by ``entry.locked_by``) and settle it."""
        if entry.correlation_id:
            ctx = RequestContext(correlation_id=entry.correlation_id, trace_id=entry.trace_id)
        else:
            ctx = RequestContext.new(trace_id=entry.trace_id)
        with CorrelationContext.bind(ctx):
            started = time.perf_counter()
            event: DomainEvent | None = None
            try:
                current, event = await self._load(entry)
            except Exception as exc:
                logger.error(
                    "outbox.dispatch.event_load_failed",
                    entry_id=entry.id,
                    event_id=entry.domain_event_id,
                    channel=entry.delivery_channel,
                    exc_info=True,
                )
                outcome = await self._settle_failed(
                    entry,
                    None,
                    DeliveryResult.retryable(_describe(exc)),
                    "event_load_failed",
                    delay=EVENT_LOAD_RETRY_DELAY,
                )
            else:
                outcome = await self._dispatch_loaded(entry, current, event)
            event_type = event.event_type if event is not None else _UNKNOWN_EVENT_TYPE
            self._metrics.record_dispatch(event_type, outcome, time.perf_counter() - started)
            return outcome

    async def cancel(self, entry_id: str, reason: str = "cancelled") -> DispatchEntry:
        """Finalize a non-terminal entry without delivering it; attempts are unchanged."""
        now = self._clock.now()
        async with self._uow_factory() as uow:
            entry = await uow.entries.cancel(entry_id, reason, now)
        logger.info("outbox.dispatch.cancelled", entry_id=entry_id, reason=reason)
        return entry

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    async def _load(self, entry: DispatchEntry) -> tuple[DispatchEntry | None, DomainEvent | None]:
        """Re-read *entry* and its event in one unit of work."""
        async with self._uow_factory() as uow:
            current = await uow.entries.get(entry.id)
            event = await uow.events.get(entry.domain_event_id)
        return current, event

    async def _dispatch_loaded(
        self,
        entry: DispatchEntry,
        current: DispatchEntry | None,
        event: DomainEvent | None,
    ) -> DispatchOutcome:
        if current is None or not current.is_leased_by(entry.locked_by or ""):
            self._log_lease_lost(entry)
            return self._lease_lost(entry)
        if event is None:
            logger.warning(
                "outbox.dispatch.missing_event",
                entry_id=current.id,
                event_id=current.domain_event_id,
                channel=current.delivery_channel,
            )
            return await self._settle_delivered(current, None, {"reason": "missing_event"})
        if current.dry_run:
            return await self._settle_delivered(current, event, {"dry_run_simulated": True})
        result, reason = await self._deliver(current, event)
        if result.ok:
            return await self._settle_delivered(current, event, result.metadata)
        return await self._settle_failed(current, event, result, reason)

    async def _deliver(self, entry: DispatchEntry, event: DomainEvent) -> tuple[DeliveryResult, str]:
        """Call the sink and map whatever it did to a result plus a failure code."""
        channel = entry.delivery_channel
        try:
            sink = self._sinks.resolve(channel)
        except SinkNotFoundError as exc:
            return DeliveryResult.terminal(exc.message), exc.code

        payload = DeliveryPayload(
            entry_id=entry.id,
            event_id=event.id,
            event_type=event.event_type,
            entity_type=event.entity_type,
            entity_id=event.entity_id,
            payload=dict(event.payload),
            occurred_at=event.occurred_at,
            attempt=entry.attempts + 1,
            performed_by=event.performed_by,
            trace_id=entry.trace_id,
            correlation_id=entry.correlation_id,
            metadata=dict(entry.metadata),
        )
        try:
            raw = await self._timeout.execute(lambda: sink.deliver(channel, payload))
        except TerminalDeliveryError as exc:
            return DeliveryResult.terminal(exc.message), exc.code
        except BaseError as exc:
            return DeliveryResult.retryable(exc.message), exc.code
        except Exception as exc:
            logger.warning(
                "outbox.dispatch.sink_raised",
                entry_id=entry.id,
                channel=channel,
                exc_info=True,
            )
            return DeliveryResult.retryable(_describe(exc)), "unexpected_error"

        if raw is None:
            return DeliveryResult.success(), DeliveryStatus.SUCCESS.value
        if not isinstance(raw, DeliveryResult):
            return (
                DeliveryResult.retryable(f"Sink returned unsupported result {type(raw).__name__}"),
                "unsupported_result",
            )
        return raw, f"delivery_{raw.status.value}"

    # ------------------------------------------------------------------
    # Settlement
    # ------------------------------------------------------------------

    async def _settle(
        self,
        entry: DispatchEntry,
        apply: Callable[[OutboxUnitOfWork], Awaitable[DispatchEntry]],
    ) -> DispatchEntry | None:
        """Run *apply* in a fresh unit of work; ``None`` means the lease was lost."""

        async def _attempt() -> DispatchEntry:
            async with self._uow_factory() as uow:
                return await apply(uow)

        try:
            return await self._persistence_retry.execute_async(_attempt)
        except LeaseLostError:
            self._log_lease_lost(entry)
            return None

    async def _settle_or_record(
        self,
        entry: DispatchEntry,
        event: DomainEvent | None,
        apply: Callable[[OutboxUnitOfWork], Awaitable[DispatchEntry]],
    ) -> DispatchEntry | DispatchOutcome | None:
        """Like :meth:`_settle`, but a write that keeps failing is recorded as ``settle_failed``.

        Domain errors are raised as-is; they describe the stored state rather
        than the connection to it.
        """
        try:
            return await self._settle(entry, apply)
        except DomainError:
            raise
        except Exception as exc:
            logger.error(
                "outbox.dispatch.settle_failed",
                entry_id=entry.id,
                worker_id=entry.locked_by,
                channel=entry.delivery_channel,
                exc_info=True,
            )
            return await self._settle_failed(
                entry,
                event,
                DeliveryResult.retryable(f"settle_failed: {_describe(exc)}"),
                "settle_failed",
                record_unsettled=False,
            )

    async def _settle_delivered(
        self,
        entry: DispatchEntry,
        event: DomainEvent | None,
        metadata: Mapping[str, Any] | None,
    ) -> DispatchOutcome:
        worker_id = entry.locked_by or ""
        now = self._clock.now()
        stored_metadata = _storable(metadata)

        async def _apply(uow: OutboxUnitOfWork) -> DispatchEntry:
            return await uow.entries.mark_delivered(entry.id, worker_id, now, stored_metadata or None)

        settled = await self._settle_or_record(entry, event, _apply)
        if isinstance(settled, DispatchOutcome):
            return settled
        if settled is None:
            return self._lease_lost(entry)
        logger.info(
            "outbox.dispatch.delivered",
            entry_id=entry.id,
            worker_id=worker_id,
            channel=entry.delivery_channel,
            attempts=settled.attempts,
            dry_run=entry.dry_run,
        )
        return DispatchOutcome(
            entry_id=entry.id,
            kind=OutcomeKind.DELIVERED,
            attempts=settled.attempts,
            dry_run=entry.dry_run,
        )

    async def _settle_failed(
        self,
        entry: DispatchEntry,
        event: DomainEvent | None,
        result: DeliveryResult,
        reason: str,
        *,
        delay: timedelta | None = None,
        record_unsettled: bool = True,
    ) -> DispatchOutcome:
        worker_id = entry.locked_by or ""
        now = self._clock.now()
        error = result.error or reason
        terminal = result.status == DeliveryStatus.TERMINAL
        next_available_at = None
        if not terminal:
            if delay is not None:
                next_available_at = now + delay
            else:
                next_available_at = self._retry_policy.next_available_at(entry.attempts + 1, now)
        stored_metadata = _storable(result.metadata)

        async def _apply(uow: OutboxUnitOfWork) -> DispatchEntry:
            updated = await uow.entries.mark_failed(
                entry.id,
                worker_id,
                error,
                now,
                terminal=terminal,
                next_available_at=next_available_at,
                metadata=stored_metadata or None,
            )
            if updated.status == DispatchStatus.FAILED_TERMINAL:
                await uow.dead_letters.record(self._dead_letter(updated, event, reason, now))
            return updated

        if record_unsettled:
            settled = await self._settle_or_record(entry, event, _apply)
            if isinstance(settled, DispatchOutcome):
                return settled
        else:
            settled = await self._settle(entry, _apply)
        if settled is None:
            return self._lease_lost(entry)

        if settled.status == DispatchStatus.FAILED_TERMINAL:
            logger.error(
                "outbox.dispatch.failed_terminal",
                entry_id=entry.id,
                worker_id=worker_id,
                channel=entry.delivery_channel,
                attempts=settled.attempts,
                error=settled.last_error,
            )
            return DispatchOutcome(
                entry_id=entry.id,
                kind=OutcomeKind.FAILED_TERMINAL,
                attempts=settled.attempts,
                error=settled.last_error,
            )
        logger.warning(
            "outbox.dispatch.retry_scheduled",
            entry_id=entry.id,
            worker_id=worker_id,
            channel=entry.delivery_channel,
            attempts=settled.attempts,
            error=settled.last_error,
            next_available_at=settled.available_at.isoformat(),
        )
        return DispatchOutcome(
            entry_id=entry.id,
            kind=OutcomeKind.RETRY_SCHEDULED,
            attempts=settled.attempts,
            error=settled.last_error,
            next_available_at=settled.available_at,
        )

    @staticmethod
    def _log_lease_lost(entry: DispatchEntry) -> None:
        logger.warning(
            "outbox.dispatch.lease_lost",
            entry_id=entry.id,
            worker_id=entry.locked_by,
            channel=entry.delivery_channel,
        )

    @staticmethod
    def _lease_lost(entry: DispatchEntry) -> DispatchOutcome:
        return DispatchOutcome(
            entry_id=entry.id,
            kind=OutcomeKind.LEASE_LOST,
            attempts=entry.attempts,
            dry_run=entry.dry_run,
        )

    @staticmethod
    def _dead_letter(
        entry: DispatchEntry,
        event: DomainEvent | None,
        reason: str,
        now: datetime,
    ) -> DeadLetterEntry:
        if event is None:
            return DeadLetterEntry(
                dispatch_id=entry.id,
                event_id=entry.domain_event_id,
                event_type=_UNKNOWN_EVENT_TYPE,
                delivery_channel=entry.delivery_channel,
                attempts=entry.attempts,
                failure_reason=reason,
                failure_message=entry.last_error or "",
                event_payload={},
                metadata={},
                failed_at=now,
            )
        return DeadLetterEntry(
            dispatch_id=entry.id,
            event_id=event.id,
            event_type=event.event_type,
            delivery_channel=entry.delivery_channel,
            attempts=entry.attempts,
            failure_reason=reason,
            failure_message=entry.last_error or "",
            event_payload=dict(event.payload),
            metadata={
                "entity_type": event.entity_type,
                "entity_id": event.entity_id,
                "performed_by": event.performed_by,
            },
            failed_at=now,
        )


__all__ = ["Dispatcher", "EVENT_LOAD_RETRY_DELAY"]
