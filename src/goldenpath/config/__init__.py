"""Configuration management with dependency injection and validation."""

from .container import Container, get_container, setup_container, setup_observability
from .settings import (
    CircuitBreakerConfig,
    ObservabilityConfig,
    PipelineConfig,
    RetryConfig,
    Settings,
    get_settings,
)

__all__ = [
    "Settings",
    "get_settings",
    "RetryConfig",
    "CircuitBreakerConfig",
    "PipelineConfig",
    "ObservabilityConfig",
    "Container",
    "get_container",
    "setup_container",
    "setup_observability",
]
