"""
Tests for structured logging, metrics and tracing of pipeline runs.
"""

import logging
from unittest.mock import AsyncMock

import pytest
from opentelemetry.metrics import NoOpMeter
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import InMemoryMetricReader
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.trace import StatusCode

from goldenpath.config.container import setup_observability
from goldenpath.config.settings import CircuitBreakerConfig, Settings
from goldenpath.core.pipeline import Pipeline, Step
from goldenpath.core.runtime_patterns import CircuitBreaker
from goldenpath.observability import logging as logging_module
from goldenpath.observability import tracing
from goldenpath.observability.logging import (
    StructuredFormatter,
    clear_correlation_id,
    get_correlation_id,
    get_logger,
    reset_correlation_id,
    set_correlation_id,
)
from goldenpath.observability.metrics import (
    get_metrics_collector,
    setup_meter_provider,
    setup_metrics,
)
from goldenpath.observability.tracing import TracingManager


def metric_names(reader: InMemoryMetricReader) -> set[str]:
    data = reader.get_metrics_data()
    return {
        metric.name
        for resource_metrics in data.resource_metrics
        for scope_metrics in resource_metrics.scope_metrics
        for metric in scope_metrics.metrics
    }


class TestStructuredLogging:
    def test_formatter_includes_correlation_and_fields(self):
        set_correlation_id("workflow_1_abc")
        record = logging.LogRecord(
            "goldenpath.core.pipeline", logging.INFO, __file__, 1, "Executing step", None, None
        )
        record.op = "resolve_chat_id"
        record.ms = 12.34
        record.pipeline = "email_to_review_request"

        line = StructuredFormatter().format(record)

        assert "level=INFO" in line
        assert "trace=workflow_1_abc" in line
        assert "mod=pipeline" in line
        assert "op=resolve_chat_id" in line
        assert "ms=12.3" in line
        assert 'msg="Executing step"' in line
        assert "pipeline=email_to_review_request" in line

    def test_formatter_without_correlation(self):
        record = logging.LogRecord("goldenpath", logging.WARNING, __file__, 1, "x", None, None)
        assert "trace=-" in StructuredFormatter().format(record)

    def test_logger_passes_fields_and_drops_reserved(self, caplog):
        caplog.set_level(logging.INFO, logger="goldenpath.test")
        set_correlation_id("callback_2_xyz")

        get_logger("goldenpath.test").info("hello", op="send", name="clash", breaker="b1")

        [record] = caplog.records
        assert record.op == "send"
        assert record.breaker == "b1"
        assert record.name == "goldenpath.test"
        assert record.correlation_id == "callback_2_xyz"

    def test_get_logger_is_cached(self):
        assert get_logger("goldenpath.x") is get_logger("goldenpath.x")

    def test_correlation_id_token_restores_previous(self):
        outer = set_correlation_id("outer")
        inner = set_correlation_id("inner")
        assert get_correlation_id() == "inner"
        reset_correlation_id(inner)
        assert get_correlation_id() == "outer"
        reset_correlation_id(outer)
        clear_correlation_id()
        assert get_correlation_id() is None

    @pytest.mark.asyncio
    async def test_breaker_opening_is_logged_as_warning(self, caplog, clock):
        caplog.set_level(logging.INFO, logger="goldenpath")
        breaker = CircuitBreaker("lookup", CircuitBreakerConfig(failure_threshold=1), clock)

        with pytest.raises(ConnectionError):
            await breaker.execute(AsyncMock(side_effect=ConnectionError("ECONNRESET")))

        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert [r.getMessage() for r in warnings] == ["Circuit breaker 'lookup' opened"]


class TestMetrics:
    @pytest.mark.asyncio
    async def test_instruments_are_exported(self, make_runner, clock):
        reader = InMemoryMetricReader()
        setup_metrics(MeterProvider(metric_readers=[reader]).get_meter("goldenpath-test"))

        breaker = CircuitBreaker("lookup", CircuitBreakerConfig(failure_threshold=1), clock)
        with pytest.raises(ConnectionError):
            await breaker.execute(AsyncMock(side_effect=ConnectionError("ECONNRESET")))
        await make_runner().run(Pipeline(name="demo", steps=(Step("one", AsyncMock()),)), {})

        names = metric_names(reader)
        assert "goldenpath_circuit_breaker_transitions_total" in names
        assert "goldenpath_pipeline_runs_total" in names
        assert "goldenpath_step_executions_total" in names
        assert "goldenpath_step_duration_seconds" in names

    def test_noop_collector_by_default(self):
        collector = get_metrics_collector()
        collector.counter("anything").add(1, {"k": "v"})
        collector.record_pipeline("demo", 0.1, "completed")
        assert collector.get_pipeline_metrics()["demo"] == {
            "runs": 1,
            "outcomes": {"completed": 1},
        }

    @pytest.mark.asyncio
    async def test_retry_delay_is_recorded(self, make_runner):
        reader = InMemoryMetricReader()
        setup_meter_provider(readers=[reader])
        flaky = AsyncMock(side_effect=[ConnectionError("ECONNRESET"), "ok"])

        await make_runner().run(Pipeline(name="demo", steps=(Step("one", flaky),)), {})

        assert "goldenpath_retry_delay_ms" in metric_names(reader)


class TestSetupObservability:
    @pytest.fixture(autouse=True)
    def quiet_logging(self, monkeypatch):
        monkeypatch.setattr(logging_module, "setup_logging", lambda level="INFO": None)

    def test_metrics_enabled_installs_sdk_meter(self):
        setup_observability(Settings(observability={"enable_metrics": True}))

        assert not isinstance(get_metrics_collector().meter, NoOpMeter)

    def test_metrics_disabled_keeps_noop_meter(self):
        setup_observability(Settings(observability={"enable_metrics": False}))

        assert isinstance(get_metrics_collector().meter, NoOpMeter)


class TestTracing:
    @pytest.fixture
    def exporter(self, monkeypatch):
        exporter = InMemorySpanExporter()
        provider = TracerProvider()
        provider.add_span_processor(SimpleSpanProcessor(exporter))
        manager = TracingManager()
        manager.tracer = provider.get_tracer("goldenpath-test")
        monkeypatch.setattr(tracing, "_tracing_manager", manager)
        return exporter

    @pytest.mark.asyncio
    async def test_run_and_step_spans(self, exporter, make_runner):
        pipeline = Pipeline(name="demo", steps=(Step("one", AsyncMock(return_value=1)),))

        result = await make_runner().run(pipeline, {})

        spans = {s.name: s for s in exporter.get_finished_spans()}
        assert set(spans) == {"pipeline.run", "pipeline.step.one"}
        assert spans["pipeline.run"].attributes["result.status"] == "completed"
        assert spans["pipeline.run"].attributes["goldenpath.correlation_id"] == (
            result.correlation_id
        )
        step_span = spans["pipeline.step.one"]
        assert step_span.attributes["goldenpath.correlation_id"] == result.correlation_id
        assert step_span.attributes["pipeline"] == "demo"
        assert step_span.parent.span_id == spans["pipeline.run"].context.span_id

    @pytest.mark.asyncio
    async def test_failed_step_span_records_error(self, exporter, make_runner):
        pipeline = Pipeline(
            name="demo", steps=(Step("one", AsyncMock(side_effect=ValueError("bad"))),)
        )

        with pytest.raises(ValueError):
            await make_runner().run(pipeline, {})

        spans = {s.name: s for s in exporter.get_finished_spans()}
        step_span = spans["pipeline.step.one"]
        assert step_span.status.status_code is StatusCode.ERROR
        assert step_span.events[0].name == "exception"
        assert spans["pipeline.run"].status.status_code is StatusCode.ERROR
