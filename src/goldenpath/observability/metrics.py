"""
Metrics for pipelines, steps, retries and circuit breakers.

Backed by the OpenTelemetry metrics API. Until ``setup_metrics`` is called with a
real meter every instrument is a no-op, so library users pay nothing unless they
opt in.
"""

from collections import defaultdict
from typing import Any

from opentelemetry.metrics import Counter as OTelCounter
from opentelemetry.metrics import Histogram, Meter, NoOpMeter
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import MetricReader, PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource

from .logging import get_logger

logger = get_logger(__name__)


class MetricsCollector:
    """Centralized metrics collection and management."""

    def __init__(self, meter: Meter):
        self.meter = meter
        self._counters: dict[str, OTelCounter] = {}
        self._histograms: dict[str, Histogram] = {}

        # In-process aggregates, exposed through get_pipeline_metrics()
        self._pipeline_runs: dict[str, int] = defaultdict(int)
        self._pipeline_outcomes: dict[str, dict[str, int]] = defaultdict(lambda: defaultdict(int))
        self._step_failures: dict[str, int] = defaultdict(int)

        self._setup_default_metrics()

    def _setup_default_metrics(self):
        self._counters["pipeline_runs_total"] = self.meter.create_counter(
            "goldenpath_pipeline_runs_total", description="Total pipeline runs", unit="1"
        )
        self._histograms["pipeline_duration"] = self.meter.create_histogram(
            "goldenpath_pipeline_duration_seconds",
            description="Pipeline run duration in seconds",
            unit="s",
        )
        self._counters["step_executions_total"] = self.meter.create_counter(
            "goldenpath_step_executions_total", description="Total step executions", unit="1"
        )
        self._histograms["step_duration"] = self.meter.create_histogram(
            "goldenpath_step_duration_seconds",
            description="Step execution duration in seconds",
            unit="s",
        )
        self._counters["circuit_breaker_transitions_total"] = self.meter.create_counter(
            "goldenpath_circuit_breaker_transitions_total",
            description="Circuit breaker state transitions",
            unit="1",
        )

    def counter(self, name: str, description: str = "", unit: str = "1") -> OTelCounter:
        """Get or create a counter metric."""
        if name not in self._counters:
            self._counters[name] = self.meter.create_counter(
                f"goldenpath_{name}", description=description, unit=unit
            )
        return self._counters[name]

    def histogram(self, name: str, description: str = "", unit: str = "1") -> Histogram:
        """Get or create a histogram metric."""
        if name not in self._histograms:
            self._histograms[name] = self.meter.create_histogram(
                f"goldenpath_{name}", description=description, unit=unit
            )
        return self._histograms[name]

    def record_step(self, step_name: str, duration: float, success: bool) -> None:
        attributes = {"step": step_name, "success": str(success).lower()}
        self._counters["step_executions_total"].add(1, attributes)
        self._histograms["step_duration"].record(duration, {"step": step_name})
        if not success:
            self._step_failures[step_name] += 1

    def record_pipeline(self, pipeline_name: str, duration: float, status: str) -> None:
        attributes = {"pipeline": pipeline_name, "status": status}
        self._counters["pipeline_runs_total"].add(1, attributes)
        self._histograms["pipeline_duration"].record(duration, attributes)
        self._pipeline_runs[pipeline_name] += 1
        self._pipeline_outcomes[pipeline_name][status] += 1

    def record_breaker_transition(self, breaker: str, from_state: str, to_state: str) -> None:
        self._counters["circuit_breaker_transitions_total"].add(
            1, {"breaker": breaker, "from": from_state, "to": to_state}
        )

    def get_pipeline_metrics(self) -> dict[str, Any]:
        """Get aggregated pipeline outcome counts."""
        return {
            name: {"runs": runs, "outcomes": dict(self._pipeline_outcomes[name])}
            for name, runs in self._pipeline_runs.items()
        } | {"step_failures": dict(self._step_failures)}


# Global metrics collector instance
_metrics_collector: MetricsCollector | None = None


def setup_metrics(meter: Meter) -> MetricsCollector:
    """Setup global metrics collector."""
    global _metrics_collector
    _metrics_collector = MetricsCollector(meter)
    return _metrics_collector


def setup_meter_provider(
    service_name: str = "goldenpath",
    service_version: str = "0.1.0",
    otlp_endpoint: str | None = None,
    readers: list[MetricReader] | None = None,
) -> MetricsCollector:
    """Install an SDK-backed collector, exporting over OTLP when an endpoint is given."""
    readers = list(readers or [])
    if otlp_endpoint:
        from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter

        readers.append(PeriodicExportingMetricReader(OTLPMetricExporter(endpoint=otlp_endpoint)))

    resource = Resource.create({"service.name": service_name, "service.version": service_version})
    provider = MeterProvider(resource=resource, metric_readers=readers)
    logger.info("Metrics initialized", otlp_endpoint=otlp_endpoint or "-")
    return setup_metrics(provider.get_meter(service_name, service_version))


def get_metrics_collector() -> MetricsCollector:
    """Get global metrics collector, creating a no-op backed one if needed."""
    global _metrics_collector
    if _metrics_collector is None:
        _metrics_collector = MetricsCollector(NoOpMeter("goldenpath"))
    return _metrics_collector


def counter(name: str, description: str = "", unit: str = "1") -> OTelCounter:
    """Get or create a counter metric."""
    return get_metrics_collector().counter(name, description, unit)


def histogram(name: str, description: str = "", unit: str = "1") -> Histogram:
    """Get or create a histogram metric."""
    return get_metrics_collector().histogram(name, description, unit)


def _reset_metrics_for_tests() -> None:
    global _metrics_collector
    _metrics_collector = None
