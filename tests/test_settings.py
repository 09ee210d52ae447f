"""
Tests for settings validation, environment overrides and the DI container.
"""

import pytest
from pydantic import ValidationError

from goldenpath.config.container import Container, get_container, setup_container
from goldenpath.config.settings import (
    DEFAULT_RETRYABLE_ERRORS,
    CircuitBreakerConfig,
    PipelineConfig,
    RetryConfig,
    Settings,
    get_settings,
)
from goldenpath.core.runtime_patterns import get_circuit_breaker_registry
from goldenpath.integrations import Collaborators
from goldenpath.pipelines import GoldenPathExecutor


class TestDefaults:
    def test_retry_defaults(self):
        config = RetryConfig()
        assert config.max_attempts == 3
        assert config.base_delay_ms == 1000
        assert config.max_delay_ms == 10000
        assert config.backoff_multiplier == 2
        assert config.timeout_ms is None
        assert "ECONNRESET" in config.retryable_errors
        assert config.retryable_errors == DEFAULT_RETRYABLE_ERRORS

    def test_breaker_and_pipeline_defaults(self):
        breaker = CircuitBreakerConfig()
        assert (breaker.failure_threshold, breaker.reset_timeout_ms) == (5, 60000)
        assert breaker.monitoring_period_ms == 300000

        pipeline = PipelineConfig()
        assert pipeline.enable_retry and pipeline.enable_circuit_breaker
        assert pipeline.enable_fallback
        assert pipeline.timeout_ms == 30000
        assert not pipeline.send_email_reply


class TestValidation:
    @pytest.mark.parametrize(
        "overrides",
        [{"max_attempts": 0}, {"backoff_multiplier": 1.0}, {"base_delay_ms": -1}],
    )
    def test_invalid_retry_config(self, overrides):
        with pytest.raises(ValidationError):
            RetryConfig(**overrides)

    def test_invalid_breaker_threshold(self):
        with pytest.raises(ValidationError):
            CircuitBreakerConfig(failure_threshold=0)

    def test_configs_are_frozen(self):
        config = RetryConfig()
        with pytest.raises(ValidationError):
            config.max_attempts = 10

    def test_invalid_environment(self):
        with pytest.raises(ValidationError):
            Settings(environment="qa")


class TestEnvironment:
    def test_nested_overrides(self, monkeypatch):
        monkeypatch.setenv("GP_RETRY__MAX_ATTEMPTS", "5")
        monkeypatch.setenv("GP_CIRCUIT_BREAKER__RESET_TIMEOUT_MS", "1000")
        monkeypatch.setenv("GP_PIPELINE__ENABLE_FALLBACK", "false")
        monkeypatch.setenv("GP_OBSERVABILITY__LOG_LEVEL", "debug")
        monkeypatch.setenv("GP_ENVIRONMENT", "production")

        settings = Settings()

        assert settings.retry.max_attempts == 5
        assert settings.circuit_breaker.reset_timeout_ms == 1000
        assert settings.pipeline.enable_fallback is False
        assert settings.observability.log_level == "DEBUG"
        assert settings.is_production()

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()


class TestContainer:
    def test_services_are_created_once(self):
        collaborators = Collaborators()
        container = setup_container(Settings(), collaborators)

        executor = container.get("golden_path_executor")

        assert isinstance(executor, GoldenPathExecutor)
        assert container.get("golden_path_executor") is executor
        assert executor.collaborators is collaborators
        assert executor.runner is container.get("pipeline_runner")

    def test_settings_flow_into_services(self):
        settings = Settings(
            retry=RetryConfig(max_attempts=7),
            circuit_breaker=CircuitBreakerConfig(failure_threshold=2),
            pipeline=PipelineConfig(enable_retry=False),
        )
        container = setup_container(settings)

        assert container.get("retry_executor").config.max_attempts == 7
        assert container.get("pipeline_runner").config.enable_retry is False

        registry = container.get("breaker_registry")
        assert registry is get_circuit_breaker_registry()
        assert registry.get("resolve_chat_id").config.failure_threshold == 2

    def test_unknown_service_returns_default(self):
        assert Container(Settings()).get("missing", "fallback") == "fallback"

    def test_get_container_is_cached(self):
        assert get_container() is get_container()
