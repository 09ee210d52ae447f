"""
Resilience and orchestration core.

- Circuit breakers keyed by step name, shared process-wide
- Retry executor with exponential backoff and per-attempt timeouts
- Generic pipeline runner for declarative golden path pipelines
"""

from .errors import (
    CircuitOpenError,
    CorrelationNotFoundError,
    ErrorKind,
    GoldenPathError,
    MissingCollaboratorError,
    PipelineAbortedError,
    PipelineValidationError,
    StepTimeoutError,
    classify_error,
)
from .pipeline import (
    Pipeline,
    PipelineResult,
    PipelineRunner,
    PipelineStatus,
    Step,
    StepExecutor,
    StepResult,
    WorkflowContext,
)
from .runtime_patterns import (
    CircuitBreaker,
    CircuitBreakerRegistry,
    CircuitState,
    RetryExecutor,
    get_circuit_breaker,
    get_circuit_breaker_registry,
)

__all__ = [
    "CircuitBreaker",
    "CircuitBreakerRegistry",
    "CircuitState",
    "RetryExecutor",
    "get_circuit_breaker",
    "get_circuit_breaker_registry",
    "Pipeline",
    "PipelineResult",
    "PipelineRunner",
    "PipelineStatus",
    "Step",
    "StepExecutor",
    "StepResult",
    "WorkflowContext",
    "GoldenPathError",
    "CircuitOpenError",
    "StepTimeoutError",
    "PipelineAbortedError",
    "PipelineValidationError",
    "CorrelationNotFoundError",
    "MissingCollaboratorError",
    "ErrorKind",
    "classify_error",
]
