"""
Configuration for the resilience core with Pydantic Settings and validation.

All tuning is construction-time: a runner, retry executor or breaker registry
reads its configuration once and never observes later changes.

Environment variables use the ``GP_`` prefix and ``__`` as the nested delimiter,
e.g. ``GP_RETRY__MAX_ATTEMPTS=5`` or ``GP_CIRCUIT_BREAKER__RESET_TIMEOUT_MS=1000``.
"""

from functools import lru_cache

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_RETRYABLE_ERRORS: tuple[str, ...] = (
    "ECONNRESET",
    "ETIMEDOUT",
    "ENOTFOUND",
    "ConnectionResetError",
    "gaierror",
    "Network Error",
    "Timeout",
)

DEFAULT_ATTEMPT_TIMEOUT_MS = 30000.0


class RetryConfig(BaseModel):
    """Tuning for the retry executor."""

    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(3, ge=1)
    base_delay_ms: float = Field(1000.0, ge=0)
    max_delay_ms: float = Field(10000.0, ge=0)
    backoff_multiplier: float = Field(2.0, gt=1.0)
    retryable_errors: tuple[str, ...] = Field(default=DEFAULT_RETRYABLE_ERRORS)
    # None defers to PipelineConfig.timeout_ms, then DEFAULT_ATTEMPT_TIMEOUT_MS
    timeout_ms: float | None = Field(None, gt=0, description="Per-attempt timeout")


class CircuitBreakerConfig(BaseModel):
    """Tuning for one circuit breaker."""

    model_config = ConfigDict(frozen=True)

    failure_threshold: int = Field(5, ge=1)
    reset_timeout_ms: int = Field(60000, ge=0)
    # Reported in snapshots only; the failure counter is not windowed
    monitoring_period_ms: int = Field(300000, ge=0)


class PipelineConfig(BaseModel):
    """Feature switches for the pipeline runner."""

    model_config = ConfigDict(frozen=True)

    enable_retry: bool = Field(True)
    enable_circuit_breaker: bool = Field(True)
    enable_fallback: bool = Field(True)
    timeout_ms: float = Field(30000.0, gt=0, description="Default per-attempt timeout")
    send_email_reply: bool = Field(False, description="Email the reviewer after a callback")


class ObservabilityConfig(BaseModel):
    """Configuration for logging, metrics and tracing."""

    log_level: str = Field("INFO")
    enable_tracing: bool = Field(False)
    enable_metrics: bool = Field(True)
    otlp_endpoint: str | None = Field(None)
    service_name: str = Field("goldenpath")
    service_version: str = Field("0.1.0")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed:
            raise ValueError(f"log_level must be one of {allowed}")
        return v.upper()


class Settings(BaseSettings):
    """Main settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_prefix="GP_", env_nested_delimiter="__", case_sensitive=False, extra="ignore"
    )

    retry: RetryConfig = Field(default_factory=RetryConfig)
    circuit_breaker: CircuitBreakerConfig = Field(default_factory=CircuitBreakerConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)

    environment: str = Field(
        "development", description="Environment: development, staging, production"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        allowed = {"development", "staging", "production"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v

    def is_production(self) -> bool:
        return self.environment == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
