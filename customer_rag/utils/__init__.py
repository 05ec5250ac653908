"""Utilities: logging and metrics."""

from customer_rag.utils.logging import clear_request_context, get_logger, set_request_context, setup_logging
from customer_rag.utils.metrics import get_metrics, MetricsCollector

__all__ = [
    "clear_request_context",
    "get_logger",
    "get_metrics",
    "MetricsCollector",
    "set_request_context",
    "setup_logging",
]
