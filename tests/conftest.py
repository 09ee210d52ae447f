"""
Global pytest configuration and fixtures for test isolation.

Breakers, metrics, tracing and settings are process-global; every test starts
from a clean slate so a breaker tripped in one test never fails-fast another.
"""

import pytest

from goldenpath.config.container import get_container
from goldenpath.config.settings import PipelineConfig, RetryConfig, get_settings
from goldenpath.core.pipeline import PipelineRunner
from goldenpath.core.runtime_patterns import (
    CircuitBreakerRegistry,
    RetryExecutor,
    _reset_registry_for_tests,
)
from goldenpath.integrations import (
    Collaborators,
    InMemoryCorrelationStore,
    InMemoryIncidentTracker,
    InMemoryIssueTracker,
    RecordingActionExecutor,
    RecordingMessagingGateway,
    RecordingNotifier,
)
from goldenpath.observability.logging import clear_correlation_id
from goldenpath.observability.metrics import _reset_metrics_for_tests
from goldenpath.observability.tracing import _reset_tracing_for_tests


def reset_all_global_state():
    """Reset every process-global registry and cache."""
    _reset_registry_for_tests()
    _reset_metrics_for_tests()
    _reset_tracing_for_tests()
    get_settings.cache_clear()
    get_container.cache_clear()
    clear_correlation_id()


@pytest.fixture(autouse=True)
def test_isolation():
    """Per-test isolation to ensure clean state for each test."""
    reset_all_global_state()
    yield
    reset_all_global_state()


class FakeClock:
    """Millisecond clock advanced by hand."""

    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


class SleepRecorder:
    """Stand-in for asyncio.sleep that records requested delays in ms."""

    def __init__(self):
        self.delays_ms: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays_ms.append(round(seconds * 1000, 3))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleep_recorder():
    return SleepRecorder()


@pytest.fixture
def registry():
    return CircuitBreakerRegistry()


@pytest.fixture
def make_runner(registry, sleep_recorder):
    """Factory for runners with fast retries and an isolated breaker registry."""

    def _make(breakers=None, **pipeline_overrides):
        retry = RetryExecutor(
            RetryConfig(max_attempts=3, base_delay_ms=100, max_delay_ms=1000),
            sleep=sleep_recorder,
        )
        return PipelineRunner(
            config=PipelineConfig(**pipeline_overrides),
            retry_executor=retry,
            breakers=breakers if breakers is not None else registry,
        )

    return _make


@pytest.fixture
def collaborators():
    return Collaborators(
        correlation_store=InMemoryCorrelationStore(),
        messaging=RecordingMessagingGateway(),
        remote_actions=RecordingActionExecutor(),
        notifier=RecordingNotifier(),
        incidents=InMemoryIncidentTracker(),
        issues=InMemoryIssueTracker(),
    )
