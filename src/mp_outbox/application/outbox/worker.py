"""Application outbox – DispatchWorker background loops.

A worker owns two asyncio tasks:

* the poll loop claims a batch, dispatches it concurrently and immediately
  polls again; it only sleeps ``poll_interval`` when a batch comes back empty;
* the recovery loop runs the reclaimer every ``recover_interval``.

Any number of workers (tasks or processes) may share one store.  Loop errors
are logged and backed off; cancellation is never swallowed.
"""
from __future__ import annotations

import asyncio
import contextlib
import os
from collections.abc import Sequence
from datetime import timedelta
from uuid import uuid4

from mp_outbox.application.outbox.dispatcher import Dispatcher
from mp_outbox.application.outbox.lease import LeaseManager
from mp_outbox.application.outbox.metrics import DispatchMetrics
from mp_outbox.application.outbox.reclaimer import Reclaimer
from mp_outbox.config.settings import DispatchSettings
from mp_outbox.kernel.errors import ValidationError
from mp_outbox.kernel.outbox import OutboxUnitOfWorkFactory, SinkRegistry
from mp_outbox.kernel.time import Clock, SystemClock
from mp_outbox.observability.logging import get_logger
from mp_outbox.observability.metrics import Metrics
from mp_outbox.resilience.retry import DispatchRetryPolicy

logger = get_logger(__name__)


def default_worker_id() -> str:
    """``outbox-dispatcher-<pid>-<8 hex>``, unique per process and instance."""
    return f"outbox-dispatcher-{os.getpid()}-{uuid4().hex[:8]}"


class DispatchWorker:
    def __init__(
        self,
        lease_manager: LeaseManager,
        dispatcher: Dispatcher,
        reclaimer: Reclaimer,
        *,
        uow_factory: OutboxUnitOfWorkFactory,
        worker_id: str | None = None,
        batch_size: int = 50,
        poll_interval: float = 2.0,
        recover_interval: float = 60.0,
        channels: Sequence[str] | None = None,
        metrics: DispatchMetrics | None = None,
        enabled: bool = True,
        shutdown_timeout: float = 30.0,
    ) -> None:
        if batch_size < 1:
            raise ValidationError("batch_size must be >= 1", field="batch_size")
        if poll_interval <= 0 or recover_interval <= 0:
            raise ValidationError("poll_interval and recover_interval must be positive")
        self._lease_manager = lease_manager
        self._dispatcher = dispatcher
        self._reclaimer = reclaimer
        self._uow_factory = uow_factory
        self.worker_id = worker_id or default_worker_id()
        self.batch_size = batch_size
        self.poll_interval = poll_interval
        self.recover_interval = recover_interval
        self.channels = list(channels) if channels else None
        self.enabled = enabled
        self.shutdown_timeout = shutdown_timeout
        self._metrics = metrics or DispatchMetrics()

        self._running = False
        self._stop_event = asyncio.Event()
        self._tasks: list[asyncio.Task[None]] = []

    @classmethod
    def from_settings(
        cls,
        settings: DispatchSettings,
        uow_factory: OutboxUnitOfWorkFactory,
        sinks: SinkRegistry,
        clock: Clock | None = None,
        metrics: Metrics | None = None,
    ) -> "DispatchWorker":
        """Wire lease manager, dispatcher and reclaimer from one settings object."""
        clock = clock or SystemClock()
        dispatch_metrics = DispatchMetrics(metrics)
        dispatcher = Dispatcher(
            uow_factory,
            sinks,
            retry_policy=DispatchRetryPolicy.from_settings(settings),
            clock=clock,
            delivery_timeout=settings.delivery_timeout_seconds,
            metrics=dispatch_metrics,
        )
        reclaimer = Reclaimer(
            uow_factory,
            clock,
            lease_timeout=timedelta(seconds=settings.lease_timeout_seconds),
            metrics=dispatch_metrics,
        )
        return cls(
            LeaseManager(uow_factory, clock),
            dispatcher,
            reclaimer,
            uow_factory=uow_factory,
            worker_id=settings.worker_id or None,
            batch_size=settings.batch_size,
            poll_interval=settings.poll_interval_seconds,
            recover_interval=settings.recover_interval_seconds,
            channels=settings.channels,
            metrics=dispatch_metrics,
            enabled=settings.enabled,
        )

    @property
    def is_running(self) -> bool:
        return self._running

    # ------------------------------------------------------------------
    # Single iterations
    # ------------------------------------------------------------------

    async def run_once(self) -> int:
        """Claim and dispatch one batch; return the number of entries processed."""
        await self._record_gauges()
        entries = await self._lease_manager.claim(self.worker_id, self.batch_size, self.channels)
        if not entries:
            return 0
        results = await asyncio.gather(
            *(self._dispatcher.dispatch(entry) for entry in entries),
            return_exceptions=True,
        )
        for entry, result in zip(entries, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                logger.error(
                    "outbox.worker.dispatch_error",
                    worker_id=self.worker_id,
                    entry_id=entry.id,
                    channel=entry.delivery_channel,
                    exc_info=result,
                )
        return len(entries)

    async def recover_once(self) -> int:
        return await self._reclaimer.reclaim_expired_leases()

    async def _record_gauges(self) -> None:
        async with self._uow_factory() as uow:
            counts = await uow.entries.count_by_status()
            dead_letters = await uow.dead_letters.count()
        self._metrics.record_queue_depth(counts)
        self._metrics.record_dead_letters(dead_letters)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        if not self.enabled:
            logger.info("outbox.worker.disabled", worker_id=self.worker_id)
            return
        if self._running:
            logger.warning("outbox.worker.already_running", worker_id=self.worker_id)
            return
        self._running = True
        self._stop_event.clear()
        self._tasks = [
            asyncio.create_task(self._poll_loop(), name=f"{self.worker_id}:poll"),
            asyncio.create_task(self._recover_loop(), name=f"{self.worker_id}:recover"),
        ]
        logger.info(
            "outbox.worker.started",
            worker_id=self.worker_id,
            batch_size=self.batch_size,
            poll_interval=self.poll_interval,
            recover_interval=self.recover_interval,
            channels=self.channels,
        )

    async def stop(self, timeout: float | None = None) -> None:
        """Stop both loops, letting an in-flight batch finish within *timeout*."""
        if not self._running:
            return
        self._running = False
        self._stop_event.set()
        limit = self.shutdown_timeout if timeout is None else timeout
        for task in self._tasks:
            try:
                await asyncio.wait_for(task, timeout=limit)
            except TimeoutError:
                logger.warning("outbox.worker.shutdown_timeout", worker_id=self.worker_id, task=task.get_name())
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        self._tasks = []
        logger.info("outbox.worker.stopped", worker_id=self.worker_id)

    async def _poll_loop(self) -> None:
        while self._running:
            try:
                processed = await self.run_once()
            except Exception:
                logger.exception("outbox.worker.poll_failed", worker_id=self.worker_id)
                await self._sleep(self.poll_interval * 2)
                continue
            if processed == 0:
                await self._sleep(self.poll_interval)
            else:
                await asyncio.sleep(0)

    async def _recover_loop(self) -> None:
        while self._running:
            try:
                await self.recover_once()
            except Exception:
                logger.exception("outbox.worker.recover_failed", worker_id=self.worker_id)
            await self._sleep(self.recover_interval)

    async def _sleep(self, seconds: float) -> None:
        """Sleep up to *seconds*, waking early when :meth:`stop` is called."""
        with contextlib.suppress(TimeoutError):
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)


__all__ = ["DispatchWorker", "default_worker_id"]
