"""
Structured logging for goldenpath with correlation ID support.

Every pipeline run binds its correlation id to a context variable so that log
lines emitted by steps, retries and circuit breakers can be grouped per run.
"""

import logging
import sys
from contextvars import ContextVar, Token
from datetime import UTC, datetime

# Context variable for correlation ID propagation
correlation_id_ctx: ContextVar[str | None] = ContextVar("correlation_id", default=None)

# Global logger cache
_loggers: dict[str, "StructuredLogger"] = {}

_RESERVED_ATTRS = frozenset(
    {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "getMessage",
        "exc_info",
        "exc_text",
        "stack_info",
        "message",
    }
)


class StructuredFormatter(logging.Formatter):
    """Formatter producing single-line key=value logs with the correlation id."""

    def format(self, record: logging.LogRecord) -> str:
        correlation_id = (
            correlation_id_ctx.get() or getattr(record, "correlation_id", None) or "-"
        )

        parts = record.name.split(".")
        mod = parts[-1] if parts else record.name
        op = getattr(record, "op", getattr(record, "funcName", "-"))

        duration = getattr(record, "ms", getattr(record, "duration_ms", None))
        ms_part = f" ms={duration:.1f}" if duration is not None else ""

        timestamp = datetime.now(UTC).isoformat()
        level = record.levelname
        msg = record.getMessage()

        extra_fields = ""
        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS or key in {"correlation_id", "op", "ms", "duration_ms"}:
                continue
            extra_fields += f" {key}={value}"

        return (
            f"t={timestamp} level={level} trace={correlation_id} mod={mod} op={op}"
            f'{ms_part} msg="{msg}"{extra_fields}'
        )


class StructuredLogger:
    """Structured logger with correlation ID and operation support."""

    def __init__(self, name: str):
        self.name = name
        self.logger = logging.getLogger(name)

    def _log(self, level: int, msg: str, **kwargs):
        # Reserved LogRecord attributes would raise KeyError inside logging
        extra = {k: v for k, v in kwargs.items() if k not in _RESERVED_ATTRS}
        extra["correlation_id"] = correlation_id_ctx.get()
        self.logger.log(level, msg, extra=extra)

    def debug(self, msg: str, **kwargs):
        self._log(logging.DEBUG, msg, **kwargs)

    def info(self, msg: str, **kwargs):
        self._log(logging.INFO, msg, **kwargs)

    def warning(self, msg: str, **kwargs):
        self._log(logging.WARNING, msg, **kwargs)

    def error(self, msg: str, **kwargs):
        self._log(logging.ERROR, msg, **kwargs)

    def timed(self, msg: str, duration_ms: float, **kwargs):
        """Log with timing information."""
        kwargs["ms"] = duration_ms
        self.info(msg, **kwargs)


def get_logger(name: str) -> StructuredLogger:
    """Get a structured logger for the given module."""
    if name not in _loggers:
        _loggers[name] = StructuredLogger(name)
    return _loggers[name]


def setup_logging(level: str = "INFO") -> None:
    """Setup logging configuration with structured formatter."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(StructuredFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, level.upper()))

    logging.getLogger("opentelemetry").setLevel(logging.WARNING)


def set_correlation_id(correlation_id: str | None) -> Token:
    """Bind a correlation ID to the current context."""
    return correlation_id_ctx.set(correlation_id)


def reset_correlation_id(token: Token) -> None:
    """Restore the correlation ID that was active before ``set_correlation_id``."""
    correlation_id_ctx.reset(token)


def get_correlation_id() -> str | None:
    """Get current correlation ID from context."""
    return correlation_id_ctx.get()


def clear_correlation_id() -> None:
    """Clear correlation ID from current context."""
    correlation_id_ctx.set(None)
