"""Observability – correlation, logging, metrics."""

from mp_outbox.observability.correlation import CorrelationContext, RequestContext
from mp_outbox.observability.logging import CorrelationProcessor, JsonLoggerFactory, get_logger
from mp_outbox.observability.metrics import Metrics, NoopMetrics

__all__ = [
    "CorrelationContext",
    "CorrelationProcessor",
    "JsonLoggerFactory",
    "Metrics",
    "NoopMetrics",
    "RequestContext",
    "get_logger",
]
