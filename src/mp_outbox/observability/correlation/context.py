"""Observability – RequestContext, CorrelationContext."""
from __future__ import annotations

import contextlib
import dataclasses
from collections.abc import Iterator
from contextvars import ContextVar
from uuid import uuid4


@dataclasses.dataclass(frozen=True)
class RequestContext:
    """Ambient context for a single request, use-case execution or dispatch."""
    correlation_id: str
    trace_id: str | None = None
    user_id: str | None = None

    @classmethod
    def new(cls, user_id: str | None = None, trace_id: str | None = None) -> "RequestContext":
        return cls(correlation_id=str(uuid4()), trace_id=trace_id, user_id=user_id)


_CTX_VAR: ContextVar[RequestContext | None] = ContextVar("_mp_outbox_request_ctx", default=None)


class CorrelationContext:
    """Ambient correlation context stored in a ``ContextVar``.

    Producers set it at the edge (HTTP middleware, job runner); the event
    recorder copies ``correlation_id``/``trace_id`` onto every event, and the
    dispatcher re-binds them around each delivery.
    """

    @staticmethod
    def set(ctx: RequestContext) -> None:
        _CTX_VAR.set(ctx)

    @staticmethod
    def get() -> RequestContext | None:
        return _CTX_VAR.get()

    @staticmethod
    def get_or_new() -> RequestContext:
        ctx = _CTX_VAR.get()
        if ctx is None:
            ctx = RequestContext.new()
            _CTX_VAR.set(ctx)
        return ctx

    @staticmethod
    def clear() -> None:
        _CTX_VAR.set(None)

    @staticmethod
    @contextlib.contextmanager
    def bind(ctx: RequestContext) -> Iterator[RequestContext]:
        """Install *ctx* for the duration of the block, then restore the previous one."""
        token = _CTX_VAR.set(ctx)
        try:
            yield ctx
        finally:
            _CTX_VAR.reset(token)


__all__ = ["CorrelationContext", "RequestContext"]
