"""Observability – structured logging helpers."""
from mp_outbox.observability.logging.factory import JsonLoggerFactory
from mp_outbox.observability.logging.processors import CorrelationProcessor, get_logger

__all__ = ["CorrelationProcessor", "JsonLoggerFactory", "get_logger"]
