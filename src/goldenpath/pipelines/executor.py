"""
Catalog access and the ``GoldenPathExecutor`` facade.

Usage:
    >>> executor = create_reliability_layer(
    ...     retry={"max_attempts": 5},
    ...     circuit_breaker={"failure_threshold": 3},
    ...     collaborators=Collaborators(messaging=gateway, correlation_store=store),
    ... )
    >>> result = await executor.execute_review_callback(
    ...     {"action": "pr:approve", "pr_id": "42", "chat_id": "-100"}
    ... )
    >>> result.status
    <PipelineStatus.COMPLETED: 'completed'>
"""

from typing import Any

from ..config.settings import CircuitBreakerConfig, PipelineConfig, RetryConfig
from ..core.pipeline import Pipeline, PipelineResult, PipelineRunner
from ..core.runtime_patterns import (
    CircuitBreakerRegistry,
    RetryExecutor,
    get_circuit_breaker_registry,
)
from ..integrations.base import Collaborators
from .incidents import ALERT_ACKNOWLEDGEMENT, ISSUE_ASSIGNMENT
from .replies import EMAIL_REPLY_DRAFT
from .review import EMAIL_TO_REVIEW_REQUEST, REVIEW_CALLBACK

CATALOG: tuple[Pipeline, ...] = (
    EMAIL_TO_REVIEW_REQUEST,
    REVIEW_CALLBACK,
    EMAIL_REPLY_DRAFT,
    ALERT_ACKNOWLEDGEMENT,
    ISSUE_ASSIGNMENT,
)


def build_catalog() -> dict[str, Pipeline]:
    return {p.name: p for p in CATALOG}


def catalog_step_names() -> list[str]:
    """Every step name used by the catalog; steps sharing a name share a breaker."""
    names: list[str] = []
    for pipeline in CATALOG:
        names.extend(n for n in pipeline.step_names if n not in names)
    return names


class GoldenPathExecutor:
    """Runs catalog pipelines with a fixed set of collaborators."""

    def __init__(
        self,
        runner: PipelineRunner,
        collaborators: Collaborators | None = None,
        catalog: dict[str, Pipeline] | None = None,
    ):
        self.runner = runner
        self.collaborators = collaborators or Collaborators()
        self.catalog = catalog or build_catalog()

    async def run(
        self, name: str, input: dict[str, Any], *, raise_on_failure: bool = True
    ) -> PipelineResult:
        try:
            pipeline = self.catalog[name]
        except KeyError:
            raise ValueError(f"Unknown pipeline: {name}") from None
        return await self.runner.run(
            pipeline, input, self.collaborators, raise_on_failure=raise_on_failure
        )

    async def execute_email_to_review_request(
        self,
        pr_id: str,
        raw_email: str,
        default_target: str | None = None,
        **extra: Any,
    ) -> PipelineResult:
        input = {"pr_id": pr_id, "raw_email": raw_email, **extra}
        if default_target:
            input["default_target"] = default_target
        return await self.run(EMAIL_TO_REVIEW_REQUEST.name, input)

    async def execute_review_callback(self, callback_data: dict[str, Any]) -> PipelineResult:
        return await self.run(REVIEW_CALLBACK.name, callback_data)

    async def execute_email_reply(
        self, reply_to: str, message_id: str, reply_text: str, subject: str | None = None
    ) -> PipelineResult:
        return await self.run(
            EMAIL_REPLY_DRAFT.name,
            {
                "reply_to": reply_to,
                "message_id": message_id,
                "reply_text": reply_text,
                "subject": subject,
            },
        )

    async def execute_alert_acknowledgement(
        self, incident_id: str, user_id: str, chat_id: str, timestamp: str | None = None
    ) -> PipelineResult:
        return await self.run(
            ALERT_ACKNOWLEDGEMENT.name,
            {
                "incident_id": incident_id,
                "user_id": user_id,
                "chat_id": chat_id,
                "timestamp": timestamp,
            },
        )

    async def execute_issue_assignment(
        self, issue_id: str, user_id: str, chat_id: str, timestamp: str | None = None
    ) -> PipelineResult:
        return await self.run(
            ISSUE_ASSIGNMENT.name,
            {"issue_id": issue_id, "user_id": user_id, "chat_id": chat_id, "timestamp": timestamp},
        )


def create_reliability_layer(
    retry: dict[str, Any] | None = None,
    circuit_breaker: dict[str, Any] | None = None,
    pipeline: dict[str, Any] | None = None,
    collaborators: Collaborators | None = None,
    registry: CircuitBreakerRegistry | None = None,
) -> GoldenPathExecutor:
    """Build an executor from partial overrides of the default configuration.

    Breakers for every catalog step are registered up front. Without an explicit
    ``registry`` the process-global one is used, and breakers that already exist
    there keep their original configuration.
    """
    breaker_config = CircuitBreakerConfig(**(circuit_breaker or {}))
    if registry is None:
        registry = get_circuit_breaker_registry()
    for name in catalog_step_names():
        registry.register(name, breaker_config)

    runner = PipelineRunner(
        config=PipelineConfig(**(pipeline or {})),
        retry_executor=RetryExecutor(RetryConfig(**(retry or {}))),
        breakers=registry,
    )
    return GoldenPathExecutor(runner, collaborators)
