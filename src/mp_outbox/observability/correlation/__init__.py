"""Observability – correlation context."""
from mp_outbox.observability.correlation.context import CorrelationContext, RequestContext

__all__ = ["CorrelationContext", "RequestContext"]
