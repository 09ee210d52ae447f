"""
Dependency injection container wiring settings into the resilience core.

Services are created lazily from factories on first ``get`` and then cached, so
one container hands out one registry, one retry executor and one runner.
"""

from functools import lru_cache
from typing import Any, TypeVar

from .settings import Settings, get_settings

T = TypeVar("T")


class Container:
    """Dependency injection container."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self._services: dict[str, Any] = {}
        self._factories: dict[str, Any] = {}
        self._singletons: dict[str, Any] = {}

    def register_factory(self, name: str, factory: Any) -> None:
        """Register a factory function for a service."""
        self._factories[name] = factory

    def register_singleton(self, name: str, instance: Any) -> None:
        """Register a singleton instance."""
        self._singletons[name] = instance

    def get(self, name: str, default: Any = None) -> Any:
        """Get a service by name."""
        if name in self._singletons:
            return self._singletons[name]

        if name in self._services:
            return self._services[name]

        if name in self._factories:
            instance = self._factories[name](self)
            self._services[name] = instance
            return instance

        return default


def setup_observability(settings: Settings) -> None:
    """Apply logging, metrics and tracing settings."""
    from ..observability.logging import setup_logging
    from ..observability.metrics import setup_meter_provider
    from ..observability.tracing import setup_tracing

    obs = settings.observability
    setup_logging(obs.log_level)
    if obs.enable_metrics:
        setup_meter_provider(obs.service_name, obs.service_version, obs.otlp_endpoint)
    if obs.enable_tracing:
        setup_tracing(obs.service_name, obs.service_version, obs.otlp_endpoint)


def setup_container(settings: Settings | None = None, collaborators: Any = None) -> Container:
    """Setup container with default service factories."""
    container = Container(settings)

    def _breaker_registry_factory(c: Container):
        from ..core.runtime_patterns import get_circuit_breaker_registry
        from ..pipelines import catalog_step_names

        registry = get_circuit_breaker_registry()
        for name in catalog_step_names():
            registry.register(name, c.settings.circuit_breaker)
        return registry

    def _retry_executor_factory(c: Container):
        from ..core.runtime_patterns import RetryExecutor

        return RetryExecutor(c.settings.retry)

    def _runner_factory(c: Container):
        from ..core.pipeline import PipelineRunner

        return PipelineRunner(
            config=c.settings.pipeline,
            retry_executor=c.get("retry_executor"),
            breakers=c.get("breaker_registry"),
        )

    def _executor_factory(c: Container):
        from ..pipelines import GoldenPathExecutor

        return GoldenPathExecutor(c.get("pipeline_runner"), c.get("collaborators"))

    container.register_factory("breaker_registry", _breaker_registry_factory)
    container.register_factory("retry_executor", _retry_executor_factory)
    container.register_factory("pipeline_runner", _runner_factory)
    container.register_factory("golden_path_executor", _executor_factory)
    if collaborators is not None:
        container.register_singleton("collaborators", collaborators)

    return container


@lru_cache
def get_container() -> Container:
    """Get cached container instance."""
    return setup_container()
