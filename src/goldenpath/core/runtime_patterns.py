"""
Runtime resilience primitives.

- Circuit breaker with lazy OPEN -> HALF_OPEN recovery
- Process-wide, lock-guarded breaker registry keyed by step name
- Retry executor with exponential backoff and a per-attempt timeout

Breaker state is shared by every pipeline run in the process that uses the same
step name, so a failure in one run can fail-fast an unrelated run.
"""

import asyncio
import threading
import time
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Any, TypeVar

from ..config.settings import DEFAULT_ATTEMPT_TIMEOUT_MS, CircuitBreakerConfig, RetryConfig
from ..observability.logging import get_logger
from ..observability.metrics import counter, get_metrics_collector, histogram
from .errors import CircuitOpenError, StepTimeoutError, classify_error, matches_any

logger = get_logger(__name__)

T = TypeVar("T")

Operation = Callable[[], Awaitable[T]]


def monotonic_ms() -> float:
    return time.monotonic() * 1000.0


class CircuitState(Enum):
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


@dataclass(frozen=True)
class BreakerSnapshot:
    name: str
    state: CircuitState
    failure_count: int
    last_failure_time_ms: float | None
    failure_threshold: int
    reset_timeout_ms: int
    monitoring_period_ms: int


class CircuitBreaker:
    """Three-state breaker guarding one class of operation.

    The failure counter is not windowed: successes while CLOSED leave it
    untouched, and it only returns to zero after a successful HALF_OPEN trial.
    """

    def __init__(
        self,
        name: str,
        config: CircuitBreakerConfig | None = None,
        clock: Callable[[], float] = monotonic_ms,
    ):
        self.name = name
        self.config = config or CircuitBreakerConfig()
        self._clock = clock
        self._lock = threading.Lock()
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time_ms: float | None = None

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def failure_count(self) -> int:
        return self._failure_count

    @property
    def last_failure_time_ms(self) -> float | None:
        return self._last_failure_time_ms

    async def execute(self, operation: Operation[T]) -> T:
        """Invoke ``operation`` unless the breaker is failing fast."""
        self._before_call()
        try:
            result = await operation()
        except Exception:
            self._on_failure()
            raise
        self._on_success()
        return result

    def _before_call(self) -> None:
        with self._lock:
            if self._state is not CircuitState.OPEN:
                return
            elapsed = self._clock() - (self._last_failure_time_ms or 0.0)
            if elapsed > self.config.reset_timeout_ms:
                self._transition(CircuitState.HALF_OPEN)
                return
            retry_after = self.config.reset_timeout_ms - elapsed

        counter("circuit_breaker_blocked_total").add(1, {"breaker": self.name})
        raise CircuitOpenError(self.name, retry_after_ms=retry_after)

    def _on_success(self) -> None:
        with self._lock:
            if self._state is CircuitState.HALF_OPEN:
                self._failure_count = 0
                self._transition(CircuitState.CLOSED)

    def _on_failure(self) -> None:
        with self._lock:
            self._failure_count += 1
            self._last_failure_time_ms = self._clock()
            if self._state is CircuitState.HALF_OPEN:
                self._transition(CircuitState.OPEN)
            elif (
                self._state is CircuitState.CLOSED
                and self._failure_count >= self.config.failure_threshold
            ):
                self._transition(CircuitState.OPEN)

    def _transition(self, new_state: CircuitState) -> None:
        # Caller holds the lock
        old_state = self._state
        self._state = new_state
        get_metrics_collector().record_breaker_transition(
            self.name, old_state.value, new_state.value
        )
        if new_state is CircuitState.OPEN:
            logger.warning(
                f"Circuit breaker '{self.name}' opened",
                breaker=self.name,
                failures=self._failure_count,
                from_state=old_state.value,
            )
        else:
            logger.info(
                f"Circuit breaker '{self.name}' moved to {new_state.value}",
                breaker=self.name,
                from_state=old_state.value,
            )

    def record_failure(self) -> None:
        """Count a failure observed outside ``execute``, such as an attempt timeout."""
        self._on_failure()

    def reset(self) -> None:
        """Force the breaker back to CLOSED with a zero failure count."""
        with self._lock:
            self._failure_count = 0
            self._last_failure_time_ms = None
            if self._state is not CircuitState.CLOSED:
                self._transition(CircuitState.CLOSED)

    def snapshot(self) -> BreakerSnapshot:
        with self._lock:
            return BreakerSnapshot(
                name=self.name,
                state=self._state,
                failure_count=self._failure_count,
                last_failure_time_ms=self._last_failure_time_ms,
                failure_threshold=self.config.failure_threshold,
                reset_timeout_ms=self.config.reset_timeout_ms,
                monitoring_period_ms=self.config.monitoring_period_ms,
            )


class CircuitBreakerRegistry:
    """Lock-guarded map of step name -> breaker; one breaker per name."""

    def __init__(
        self,
        default_config: CircuitBreakerConfig | None = None,
        clock: Callable[[], float] = monotonic_ms,
    ):
        self.default_config = default_config or CircuitBreakerConfig()
        self._clock = clock
        self._lock = threading.Lock()
        self._breakers: dict[str, CircuitBreaker] = {}

    def get(self, name: str) -> CircuitBreaker | None:
        with self._lock:
            return self._breakers.get(name)

    def get_or_create(
        self, name: str, config: CircuitBreakerConfig | None = None
    ) -> CircuitBreaker:
        with self._lock:
            breaker = self._breakers.get(name)
            if breaker is None:
                breaker = CircuitBreaker(name, config or self.default_config, self._clock)
                self._breakers[name] = breaker
            return breaker

    def register(self, name: str, config: CircuitBreakerConfig | None = None) -> CircuitBreaker:
        """Register a breaker; an existing breaker for ``name`` is kept as is."""
        return self.get_or_create(name, config)

    def names(self) -> list[str]:
        with self._lock:
            return sorted(self._breakers)

    def snapshot(self) -> dict[str, BreakerSnapshot]:
        with self._lock:
            breakers = list(self._breakers.values())
        return {b.name: b.snapshot() for b in breakers}

    def reset(self) -> None:
        """Drop every breaker."""
        with self._lock:
            self._breakers.clear()


# Process-global registry shared by all runners that are not given their own
_registry: CircuitBreakerRegistry | None = None
_registry_lock = threading.Lock()


def get_circuit_breaker_registry() -> CircuitBreakerRegistry:
    global _registry
    with _registry_lock:
        if _registry is None:
            _registry = CircuitBreakerRegistry()
        return _registry


def get_circuit_breaker(name: str) -> CircuitBreaker:
    """Get or create the process-global breaker for ``name``."""
    return get_circuit_breaker_registry().get_or_create(name)


def create_circuit_breaker_registry(
    names: Iterable[str], config: CircuitBreakerConfig | None = None
) -> CircuitBreakerRegistry:
    registry = CircuitBreakerRegistry(config)
    for name in names:
        registry.register(name)
    return registry


def _reset_registry_for_tests() -> None:
    global _registry
    with _registry_lock:
        _registry = None


class RetryExecutor:
    """Bounded-attempt caller with exponential backoff.

    Only the error from the final attempt is raised; earlier failures are logged
    but not aggregated.
    """

    def __init__(
        self,
        config: RetryConfig | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.config = config or RetryConfig()
        self._sleep = sleep

    def is_retryable(self, error: BaseException) -> bool:
        return matches_any(error, self.config.retryable_errors)

    def compute_delay_ms(self, attempt: int) -> float:
        """Delay after the ``attempt``-th failure (1-based), capped at ``max_delay_ms``."""
        delay = self.config.base_delay_ms * self.config.backoff_multiplier ** (attempt - 1)
        return min(delay, self.config.max_delay_ms)

    async def run_attempt(self, operation: Operation[T], timeout_ms: float | None = None) -> T:
        """Run one attempt, raising ``StepTimeoutError`` if the timer wins."""
        timeout_ms = timeout_ms or self.config.timeout_ms or DEFAULT_ATTEMPT_TIMEOUT_MS
        try:
            async with asyncio.timeout(timeout_ms / 1000.0) as scope:
                return await operation()
        except TimeoutError as e:
            if scope.expired():
                raise StepTimeoutError(timeout_ms) from e
            raise

    async def execute_with_retry(
        self,
        operation: Operation[T],
        label: str,
        timeout_ms: float | None = None,
        on_timeout: Callable[[StepTimeoutError], None] | None = None,
    ) -> T:
        """Run ``operation`` until it succeeds, fails permanently or runs out of attempts.

        ``on_timeout`` is called for every attempt cut off by the timer, before the
        retry decision is made.
        """
        max_attempts = self.config.max_attempts

        for attempt in range(1, max_attempts + 1):
            logger.debug(f"Attempt {attempt}/{max_attempts} for {label}", op=label)
            try:
                result = await self.run_attempt(operation, timeout_ms)
            except Exception as e:
                counter("retry_attempts_total").add(1, {"label": label})
                if on_timeout is not None and isinstance(e, StepTimeoutError):
                    on_timeout(e)
                retryable = self.is_retryable(e)
                kind = classify_error(e, self.config.retryable_errors)
                logger.warning(
                    f"{label} failed on attempt {attempt}: {e}",
                    op=label,
                    error_kind=kind.value,
                    error_type=type(e).__name__,
                )

                if not retryable or attempt == max_attempts:
                    reason = "non-retryable error" if not retryable else "max attempts reached"
                    logger.info(f"Not retrying {label}: {reason}", op=label)
                    counter("retry_exhausted_total").add(1, {"label": label})
                    raise

                delay_ms = self.compute_delay_ms(attempt)
                histogram("retry_delay_ms", "Backoff before the next attempt", "ms").record(
                    delay_ms, {"label": label}
                )
                logger.debug(f"Waiting {delay_ms:.0f}ms before retrying {label}", op=label)
                await self._sleep(delay_ms / 1000.0)
                continue

            if attempt > 1:
                logger.info(f"{label} succeeded on attempt {attempt}", op=label)
            return result

        raise RuntimeError("Retry loop completed without result")
