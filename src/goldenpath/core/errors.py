"""
Error taxonomy for steps and pipelines.

Retryability is decided by matching configured patterns against an error's
message and type name (see ``RetryExecutor.is_retryable``); ``classify_error``
maps an error onto the taxonomy used in logs and metrics:

- transient: matches a retryable pattern and is retried per policy
- permanent: anything else, fails the attempt immediately
- circuit_open: raised by a breaker that is failing fast
- timeout: an attempt exceeded its per-attempt timeout
"""

from collections.abc import Iterable
from enum import Enum


class ErrorKind(Enum):
    TRANSIENT = "transient"
    PERMANENT = "permanent"
    CIRCUIT_OPEN = "circuit_open"
    TIMEOUT = "timeout"


class GoldenPathError(Exception):
    """Base class for errors raised by the resilience core."""


class CircuitOpenError(GoldenPathError):
    """Raised by an OPEN breaker instead of invoking the wrapped operation."""

    def __init__(self, breaker_name: str, retry_after_ms: float | None = None):
        self.breaker_name = breaker_name
        self.retry_after_ms = retry_after_ms
        super().__init__(f"Circuit breaker is OPEN for '{breaker_name}'")


class StepTimeoutError(GoldenPathError, TimeoutError):
    """Raised when a single attempt outlives its timeout."""

    def __init__(self, timeout_ms: float):
        self.timeout_ms = timeout_ms
        super().__init__(f"Operation timed out after {timeout_ms:g}ms")


class PipelineValidationError(GoldenPathError, ValueError):
    """Pipeline input is missing required fields."""


class CorrelationNotFoundError(GoldenPathError, LookupError):
    """No messaging target is mapped for a correlation key."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"No chat mapping found for {key}")


class MissingCollaboratorError(GoldenPathError):
    """A step needs a collaborator that was not supplied."""

    def __init__(self, collaborator: str, step_name: str):
        self.collaborator = collaborator
        self.step_name = step_name
        super().__init__(f"Step '{step_name}' requires collaborator '{collaborator}'")


class PipelineAbortedError(GoldenPathError):
    """Terminal pipeline failure after the fallback also failed."""

    def __init__(
        self,
        pipeline_name: str,
        correlation_id: str,
        cause: BaseException,
        fallback_error: BaseException | None = None,
    ):
        self.pipeline_name = pipeline_name
        self.correlation_id = correlation_id
        self.cause = cause
        self.fallback_error = fallback_error
        if fallback_error is not None:
            message = f"Both golden path and fallback failed: {cause} -> {fallback_error}"
        else:
            message = f"Pipeline '{pipeline_name}' aborted: {cause}"
        super().__init__(message)


def matches_any(error: BaseException, patterns: Iterable[str]) -> bool:
    """True if the error's message or type name contains any pattern."""
    message = str(error)
    type_name = type(error).__name__
    return any(p in message or p in type_name for p in patterns)


def classify_error(error: BaseException, retryable_patterns: Iterable[str]) -> ErrorKind:
    if isinstance(error, CircuitOpenError):
        return ErrorKind.CIRCUIT_OPEN
    if isinstance(error, TimeoutError):
        return ErrorKind.TIMEOUT
    if matches_any(error, retryable_patterns):
        return ErrorKind.TRANSIENT
    return ErrorKind.PERMANENT
