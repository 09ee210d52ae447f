"""
OpenTelemetry tracing for pipeline runs and steps.

Spans are emitted through the OpenTelemetry API; without ``initialize()`` the
global proxy tracer is used, which is a no-op until the host application installs
a tracer provider.
"""

import functools
from collections.abc import Callable
from contextlib import contextmanager
from typing import Any

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace import Status, StatusCode

from .logging import get_correlation_id, get_logger

logger = get_logger(__name__)


class TracingManager:
    """Manages OpenTelemetry tracing configuration and utilities."""

    def __init__(self, service_name: str = "goldenpath", service_version: str = "0.1.0"):
        self.service_name = service_name
        self.service_version = service_version
        self.tracer_provider: TracerProvider | None = None
        self.tracer: trace.Tracer = trace.get_tracer(service_name, service_version)
        self._initialized = False

    def initialize(self, otlp_endpoint: str | None = None) -> None:
        """Install an SDK tracer provider, exporting over OTLP when an endpoint is given."""
        if self._initialized:
            return

        resource = Resource.create(
            {"service.name": self.service_name, "service.version": self.service_version}
        )
        self.tracer_provider = TracerProvider(resource=resource)

        if otlp_endpoint:
            from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter

            self.tracer_provider.add_span_processor(
                BatchSpanProcessor(OTLPSpanExporter(endpoint=otlp_endpoint))
            )

        trace.set_tracer_provider(self.tracer_provider)
        self.tracer = trace.get_tracer(self.service_name, self.service_version)
        self._initialized = True
        logger.info("Tracing initialized", otlp_endpoint=otlp_endpoint or "-")

    @contextmanager
    def span(self, name: str, attributes: dict[str, Any] | None = None):
        """Context manager for creating spans tagged with the correlation id."""
        with self.tracer.start_as_current_span(
            name, record_exception=False, set_status_on_exception=False
        ) as span:
            correlation_id = get_correlation_id()
            if correlation_id:
                span.set_attribute("goldenpath.correlation_id", correlation_id)
            for key, value in (attributes or {}).items():
                span.set_attribute(key, str(value))
            try:
                yield span
            except Exception as e:
                span.record_exception(e)
                span.set_status(Status(StatusCode.ERROR, str(e)))
                raise

    def shutdown(self) -> None:
        if self.tracer_provider:
            self.tracer_provider.shutdown()
        self._initialized = False


# Global tracing manager
_tracing_manager: TracingManager | None = None


def get_tracing_manager() -> TracingManager:
    """Get global tracing manager."""
    global _tracing_manager
    if _tracing_manager is None:
        _tracing_manager = TracingManager()
    return _tracing_manager


def setup_tracing(
    service_name: str = "goldenpath",
    service_version: str = "0.1.0",
    otlp_endpoint: str | None = None,
) -> TracingManager:
    """Setup and initialize the global tracing manager."""
    global _tracing_manager
    _tracing_manager = TracingManager(service_name, service_version)
    _tracing_manager.initialize(otlp_endpoint)
    return _tracing_manager


def trace_span(name: str | None = None, attributes: dict[str, Any] | None = None):
    """Decorator wrapping a coroutine function in a span."""

    def decorator(func: Callable) -> Callable:
        span_name = name or f"{func.__module__}.{func.__qualname__}"

        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            with get_tracing_manager().span(span_name, attributes) as span:
                result = await func(*args, **kwargs)
                status = getattr(result, "status", None)
                if status is not None:
                    span.set_attribute("result.status", str(getattr(status, "value", status)))
                span.set_status(Status(StatusCode.OK))
                return result

        return wrapper

    return decorator


def set_span_attributes(attributes: dict[str, Any]) -> None:
    """Set attributes on the current span."""
    current_span = trace.get_current_span()
    if current_span.is_recording():
        for key, value in attributes.items():
            current_span.set_attribute(key, str(value))


def _reset_tracing_for_tests() -> None:
    global _tracing_manager
    _tracing_manager = None
