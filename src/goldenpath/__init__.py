"""
goldenpath - resilience and workflow orchestration for cross-system automations.

Relays events between an inbound-email processor, a chat gateway and a
source-control system through "golden path" pipelines: ordered, named steps, each
guarded by a circuit breaker and a retry policy, with an optional best-effort
fallback.

Quick Start:
    >>> from goldenpath import Collaborators, create_reliability_layer
    >>> from goldenpath.integrations import InMemoryCorrelationStore, RecordingMessagingGateway
    >>>
    >>> store = InMemoryCorrelationStore()
    >>> await store.put("pr42", "-100123")
    >>> executor = create_reliability_layer(
    ...     collaborators=Collaborators(
    ...         correlation_store=store, messaging=RecordingMessagingGateway()
    ...     )
    ... )
    >>> result = await executor.execute_email_to_review_request("42", raw_email)
    >>> result.status.value, result.completed_steps
    ('completed', ['process_email', 'resolve_chat_id', 'send_review_card', 'store_mapping'])

Safety:
    Pipelines never compensate steps that already ran. If a later step fails,
    messages already sent and remote actions already executed stay in effect.

Configuration:
    - GP_RETRY__MAX_ATTEMPTS=3
    - GP_CIRCUIT_BREAKER__FAILURE_THRESHOLD=5
    - GP_PIPELINE__ENABLE_FALLBACK=true
    - GP_OBSERVABILITY__LOG_LEVEL=INFO
"""

__version__ = "0.1.0"

from .config.settings import CircuitBreakerConfig, PipelineConfig, RetryConfig, Settings
from .core.errors import CircuitOpenError, PipelineAbortedError, StepTimeoutError
from .core.pipeline import Pipeline, PipelineResult, PipelineRunner, PipelineStatus, Step
from .core.runtime_patterns import CircuitBreaker, CircuitState, RetryExecutor
from .integrations.base import Collaborators
from .pipelines import GoldenPathExecutor, build_catalog, create_reliability_layer

__all__ = [
    "CircuitBreaker",
    "CircuitState",
    "RetryExecutor",
    "Pipeline",
    "PipelineResult",
    "PipelineRunner",
    "PipelineStatus",
    "Step",
    "GoldenPathExecutor",
    "build_catalog",
    "create_reliability_layer",
    "Collaborators",
    "CircuitOpenError",
    "PipelineAbortedError",
    "StepTimeoutError",
    "Settings",
    "RetryConfig",
    "CircuitBreakerConfig",
    "PipelineConfig",
]
