"""
Golden path pipelines: declared, ordered, named steps over one generic runner.

A ``Pipeline`` is data: a name, an ordered tuple of ``Step`` objects, an optional
fallback and a payload builder. ``PipelineRunner`` executes any pipeline the same
way:

- a correlation id is derived from the input and bound to the logging context
- steps run strictly one after another through the ``StepExecutor``, which wraps
  each call in the step's circuit breaker (inner) and the retry executor (outer)
- each step's output is threaded into the ``WorkflowContext`` for later steps
- on terminal failure the fallback runs if enabled, otherwise the original error
  propagates unchanged

Already-executed steps are never compensated. A message sent by step 2 stays sent
when step 3 fails, so callers with side-effect sensitive workflows must provide
their own at-most-once guarantees.
"""

import functools
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, TypeVar

from ..config.settings import PipelineConfig
from ..observability.logging import get_logger, reset_correlation_id, set_correlation_id
from ..observability.metrics import get_metrics_collector
from ..observability.tracing import get_tracing_manager, set_span_attributes, trace_span
from .determinism import generate_correlation_id
from .errors import PipelineAbortedError, StepTimeoutError
from .runtime_patterns import (
    CircuitBreaker,
    CircuitBreakerRegistry,
    Operation,
    RetryExecutor,
    get_circuit_breaker_registry,
)

if TYPE_CHECKING:
    from ..integrations.base import Collaborators

logger = get_logger(__name__)

T = TypeVar("T")


class PipelineStatus(Enum):
    COMPLETED = "completed"
    FALLBACK_EXECUTED = "fallback_executed"
    FAILED = "failed"


@dataclass
class StepResult:
    """Outcome of one step execution."""

    step_name: str
    success: bool
    output: Any = None
    error: str | None = None
    duration_ms: float = 0.0
    skipped: bool = False


@dataclass
class WorkflowContext:
    """Data accumulated during one pipeline run."""

    correlation_id: str
    pipeline_name: str
    input: dict[str, Any]
    collaborators: "Collaborators | None" = None
    config: PipelineConfig = field(default_factory=PipelineConfig)
    start_time: float = field(default_factory=time.time)
    data: dict[str, Any] = field(default_factory=dict)
    results: dict[str, Any] = field(default_factory=dict)
    step_results: list[StepResult] = field(default_factory=list)

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    @property
    def completed_steps(self) -> list[str]:
        return [r.step_name for r in self.step_results if r.success and not r.skipped]

    def record(self, step: "Step", output: Any, duration_ms: float) -> None:
        self.results[step.name] = output
        if step.output_key:
            self.data[step.output_key] = output
        self.step_results.append(
            StepResult(step_name=step.name, success=True, output=output, duration_ms=duration_ms)
        )


StepOperation = Callable[[WorkflowContext], Awaitable[Any]]
Fallback = Callable[[WorkflowContext, Exception], Awaitable[dict[str, Any]]]
PayloadBuilder = Callable[[WorkflowContext], dict[str, Any]]


@dataclass(frozen=True)
class Step:
    """One named unit of work. The name also keys the step's circuit breaker."""

    name: str
    run: StepOperation
    output_key: str | None = None
    condition: Callable[[WorkflowContext], bool] | None = None

    def should_execute(self, ctx: WorkflowContext) -> bool:
        if self.condition is None:
            return True
        return self.condition(ctx)


@dataclass(frozen=True)
class Pipeline:
    """Declarative pipeline definition."""

    name: str
    steps: tuple[Step, ...]
    id_prefix: str = "workflow"
    fallback: Fallback | None = None
    build_payload: PayloadBuilder | None = None
    description: str = ""

    def __post_init__(self):
        if not self.steps:
            raise ValueError(f"Pipeline '{self.name}' declares no steps")
        names = [s.name for s in self.steps]
        if len(set(names)) != len(names):
            raise ValueError(f"Pipeline '{self.name}' declares duplicate step names: {names}")

    @property
    def step_names(self) -> list[str]:
        return [s.name for s in self.steps]


@dataclass
class PipelineResult:
    """Final outcome of a pipeline run."""

    correlation_id: str
    pipeline_name: str
    status: PipelineStatus
    duration_ms: float
    completed_steps: list[str]
    payload: dict[str, Any] = field(default_factory=dict)
    original_error: str | None = None
    step_results: list[StepResult] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.status is not PipelineStatus.FAILED

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "correlation_id": self.correlation_id,
            "pipeline": self.pipeline_name,
            "status": self.status.value,
            "duration_ms": self.duration_ms,
            "completed_steps": list(self.completed_steps),
        }
        if self.original_error is not None:
            data["original_error"] = self.original_error
        data.update(self.payload)
        return data


class StepExecutor:
    """Runs one step operation behind its breaker and the retry policy.

    Retry wraps the breaker, so every attempt consults the shared breaker. Once
    the breaker opens mid-loop the resulting ``CircuitOpenError`` is not
    retryable by default and the loop stops.
    """

    def __init__(
        self,
        retry_executor: RetryExecutor,
        breakers: CircuitBreakerRegistry | None,
        config: PipelineConfig,
    ):
        self.retry_executor = retry_executor
        self.breakers = breakers
        self.config = config

    async def execute_step(self, step_name: str, operation: Operation[T], correlation_id: str) -> T:
        token = set_correlation_id(correlation_id)
        try:
            logger.info(f"Executing step: {step_name}", op=step_name)

            step_operation = operation
            breaker = None
            if self.config.enable_circuit_breaker and self.breakers is not None:
                breaker = self.breakers.get_or_create(step_name)
                step_operation = functools.partial(breaker.execute, operation)

            # The timer cancels breaker.execute, so timeouts are counted here
            on_timeout = None
            if breaker is not None:
                on_timeout = functools.partial(_record_timeout, breaker)

            timeout_ms = self.retry_executor.config.timeout_ms or self.config.timeout_ms
            if self.config.enable_retry:
                return await self.retry_executor.execute_with_retry(
                    step_operation, f"{step_name} ({correlation_id})", timeout_ms, on_timeout
                )
            try:
                return await self.retry_executor.run_attempt(step_operation, timeout_ms)
            except StepTimeoutError as e:
                if on_timeout is not None:
                    on_timeout(e)
                raise
        finally:
            reset_correlation_id(token)


def _record_timeout(breaker: CircuitBreaker, error: StepTimeoutError) -> None:
    logger.warning(
        f"Attempt timed out after {error.timeout_ms:g}ms, counting a failure",
        breaker=breaker.name,
    )
    breaker.record_failure()


class PipelineRunner:
    """Generic golden path runner."""

    def __init__(
        self,
        config: PipelineConfig | None = None,
        retry_executor: RetryExecutor | None = None,
        breakers: CircuitBreakerRegistry | None = None,
    ):
        self.config = config or PipelineConfig()
        self.retry_executor = retry_executor or RetryExecutor()
        self.breakers = breakers if breakers is not None else get_circuit_breaker_registry()
        self.step_executor = StepExecutor(self.retry_executor, self.breakers, self.config)

    @trace_span("pipeline.run")
    async def run(
        self,
        pipeline: Pipeline,
        input: dict[str, Any],
        collaborators: "Collaborators | None" = None,
        *,
        raise_on_failure: bool = True,
    ) -> PipelineResult:
        """Run ``pipeline`` on ``input``.

        Raises the terminal step error (no fallback), or ``PipelineAbortedError``
        when the fallback fails too. With ``raise_on_failure=False`` both cases
        return a ``failed`` result instead.
        """
        correlation_id = generate_correlation_id(pipeline.id_prefix, input)
        ctx = WorkflowContext(
            correlation_id=correlation_id,
            pipeline_name=pipeline.name,
            input=input,
            collaborators=collaborators,
            config=self.config,
        )
        token = set_correlation_id(correlation_id)
        started = time.perf_counter()
        set_span_attributes({"goldenpath.correlation_id": correlation_id})
        logger.info(
            f"Executing golden path '{pipeline.name}'",
            pipeline=pipeline.name,
            steps=len(pipeline.steps),
        )

        try:
            try:
                await self._run_steps(pipeline, ctx)
            except Exception as error:
                duration_ms = (time.perf_counter() - started) * 1000
                logger.error(
                    f"Golden path '{pipeline.name}' failed after {duration_ms:.0f}ms: {error}",
                    pipeline=pipeline.name,
                    completed=",".join(ctx.completed_steps) or "-",
                )
                return await self._handle_failure(pipeline, ctx, error, started, raise_on_failure)

            payload = pipeline.build_payload(ctx) if pipeline.build_payload else {}
            result = self._result(pipeline, ctx, PipelineStatus.COMPLETED, started, payload)
            logger.timed(
                f"Golden path '{pipeline.name}' completed",
                result.duration_ms,
                pipeline=pipeline.name,
            )
            return result
        finally:
            reset_correlation_id(token)

    async def _run_steps(self, pipeline: Pipeline, ctx: WorkflowContext) -> None:
        metrics = get_metrics_collector()
        tracing = get_tracing_manager()

        for step in pipeline.steps:
            if not step.should_execute(ctx):
                logger.info(f"Skipping step {step.name}: condition not met", op=step.name)
                ctx.step_results.append(StepResult(step_name=step.name, success=True, skipped=True))
                continue

            started = time.perf_counter()
            try:
                with tracing.span(f"pipeline.step.{step.name}", {"pipeline": pipeline.name}):
                    output = await self.step_executor.execute_step(
                        step.name, functools.partial(step.run, ctx), ctx.correlation_id
                    )
            except Exception as e:
                duration = time.perf_counter() - started
                metrics.record_step(step.name, duration, False)
                ctx.step_results.append(
                    StepResult(
                        step_name=step.name,
                        success=False,
                        error=str(e),
                        duration_ms=duration * 1000,
                    )
                )
                raise

            duration = time.perf_counter() - started
            metrics.record_step(step.name, duration, True)
            ctx.record(step, output, duration * 1000)

    async def _handle_failure(
        self,
        pipeline: Pipeline,
        ctx: WorkflowContext,
        error: Exception,
        started: float,
        raise_on_failure: bool,
    ) -> PipelineResult:
        if self.config.enable_fallback and pipeline.fallback is not None:
            logger.info(f"Executing fallback path for {ctx.correlation_id}", pipeline=pipeline.name)
            try:
                fallback_payload = await pipeline.fallback(ctx, error)
            except Exception as fallback_error:
                logger.error(
                    f"Fallback path also failed: {fallback_error}", pipeline=pipeline.name
                )
                aborted = PipelineAbortedError(
                    pipeline.name, ctx.correlation_id, error, fallback_error
                )
                result = self._result(
                    pipeline, ctx, PipelineStatus.FAILED, started, original_error=str(aborted)
                )
                if raise_on_failure:
                    raise aborted from fallback_error
                return result

            logger.info(f"Fallback path executed: {ctx.correlation_id}", pipeline=pipeline.name)
            return self._result(
                pipeline,
                ctx,
                PipelineStatus.FALLBACK_EXECUTED,
                started,
                fallback_payload or {},
                original_error=str(error),
            )

        result = self._result(
            pipeline, ctx, PipelineStatus.FAILED, started, original_error=str(error)
        )
        if raise_on_failure:
            raise error
        return result

    def _result(
        self,
        pipeline: Pipeline,
        ctx: WorkflowContext,
        status: PipelineStatus,
        started: float,
        payload: dict[str, Any] | None = None,
        original_error: str | None = None,
    ) -> PipelineResult:
        duration = time.perf_counter() - started
        get_metrics_collector().record_pipeline(pipeline.name, duration, status.value)
        return PipelineResult(
            correlation_id=ctx.correlation_id,
            pipeline_name=pipeline.name,
            status=status,
            duration_ms=duration * 1000,
            completed_steps=ctx.completed_steps,
            payload=payload or {},
            original_error=original_error,
            step_results=list(ctx.step_results),
        )
