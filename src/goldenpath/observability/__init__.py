"""
Observability for goldenpath: structured logging, OpenTelemetry metrics and spans.

Usage:
    >>> from goldenpath.observability import get_logger, setup_logging
    >>> setup_logging("DEBUG")
    >>> logger = get_logger(__name__)
    >>> logger.info("Step finished", step="send_confirmation")

Environment variables (see ``goldenpath.config.settings``):
    - GP_OBSERVABILITY__LOG_LEVEL=INFO
    - GP_OBSERVABILITY__ENABLE_TRACING=true
    - GP_OBSERVABILITY__OTLP_ENDPOINT=http://...
"""

from .logging import get_correlation_id, get_logger, set_correlation_id, setup_logging
from .metrics import (
    counter,
    get_metrics_collector,
    histogram,
    setup_meter_provider,
    setup_metrics,
)
from .tracing import get_tracing_manager, set_span_attributes, setup_tracing, trace_span

__all__ = [
    "get_logger",
    "setup_logging",
    "get_correlation_id",
    "set_correlation_id",
    "counter",
    "histogram",
    "get_metrics_collector",
    "setup_metrics",
    "setup_meter_provider",
    "trace_span",
    "get_tracing_manager",
    "setup_tracing",
    "set_span_attributes",
]
