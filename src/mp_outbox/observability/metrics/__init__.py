"""Observability – metrics ports."""
from mp_outbox.observability.metrics.noop import NoopMetrics
from mp_outbox.observability.metrics.ports import Counter, Gauge, Histogram, Metrics

__all__ = ["Counter", "Gauge", "Histogram", "Metrics", "NoopMetrics"]
