"""
Structured logging for Chronicle

structlog on top of stdlib logging, with a per-context correlation id that
is both attached to log lines and (through the repository's enrichers)
written into envelope metadata, so a log line can be matched to the events
it produced.
"""

import contextvars
import logging
import os
import secrets
import sys
import time
from typing import Any

import structlog

correlation_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "chronicle_correlation_id", default=""
)

# Set by configure_logging; None defers to the environment variables
_configured_environment: str | None = None


def generate_correlation_id() -> str:
    """Return a 22-character URL-safe random id (128 bits)"""
    return secrets.token_urlsafe(16)


def get_correlation_id() -> str:
    """Get the current correlation ID, generating one on first use"""
    cid = correlation_id_var.get()
    if not cid:
        cid = generate_correlation_id()
        correlation_id_var.set(cid)
    return cid


def set_correlation_id(correlation_id: str) -> None:
    correlation_id_var.set(correlation_id)


def add_correlation_id(
    logger: logging.Logger, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """structlog processor adding the correlation id to every log event"""
    event_dict["correlation_id"] = get_correlation_id()
    return event_dict


def configure_logging(
    *,
    json_output: bool = False,
    log_level: str = "INFO",
    environment: str | None = None,
) -> None:
    """
    Configure structured logging for the process.

    Args:
        json_output: JSON lines (production) instead of the colored console renderer
        log_level: Logging level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        environment: "production" suppresses stack traces in failure logs;
            None falls back to CHRONICLE_ENVIRONMENT / ENVIRONMENT
    """
    global _configured_environment
    _configured_environment = environment
    level = getattr(logging, log_level.upper())

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
    )

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        add_correlation_id,
    ]

    if json_output:
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = shared_processors + [
            structlog.processors.ExceptionRenderer(),
            structlog.dev.ConsoleRenderer(colors=True),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger (name is typically __name__)"""
    return structlog.get_logger(name)


def is_production() -> bool:
    """
    True when running in production

    The environment passed to configure_logging wins; otherwise
    CHRONICLE_ENVIRONMENT (or ENVIRONMENT) decides.
    """
    if _configured_environment is not None:
        return _configured_environment.lower() == "production"
    environment = os.getenv("CHRONICLE_ENVIRONMENT") or os.getenv("ENVIRONMENT", "development")
    return environment.lower() == "production"


# Keys whose values never reach the logs; event payloads may carry personal data
REDACTED_FIELDS = {
    "payload",
    "metadata",
    "password",
    "token",
    "secret",
    "api_key",
}


def redact_context(context: dict[str, Any]) -> dict[str, Any]:
    """
    Replace sensitive values in a log context

    Example:
        >>> redact_context({"payload": {"email": "a@b.c"}, "aggregate_id": "b-1"})
        {'payload': '***REDACTED***', 'aggregate_id': 'b-1'}
    """
    return {k: "***REDACTED***" if k in REDACTED_FIELDS else v for k, v in context.items()}


class LogOperation:
    """
    Context manager that logs start, completion (with duration) or failure of an operation

    Exceptions listed in ``expected`` are outcomes the caller handles (a
    missing aggregate, a lost race); they are logged as "<op> rejected" at
    warning level without a stack trace. Anything else is logged as
    "<op> failed" at error level.
    """

    def __init__(
        self,
        logger: structlog.stdlib.BoundLogger,
        operation: str,
        *,
        expected: tuple[type[BaseException], ...] = (),
        **context: Any,
    ):
        self.logger = logger
        self.operation = operation
        self.expected = expected
        self.context = context
        self.start_time: float = 0.0

    def __enter__(self) -> "LogOperation":
        self.start_time = time.perf_counter()
        self.logger.debug(
            f"{self.operation} started",
            operation=self.operation,
            **redact_context(self.context),
        )
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        duration_ms = round((time.perf_counter() - self.start_time) * 1000, 2)
        redacted = redact_context(self.context)

        if exc_type is None:
            self.logger.info(
                f"{self.operation} completed",
                operation=self.operation,
                duration_ms=duration_ms,
                **redacted,
            )
        elif issubclass(exc_type, self.expected):
            self.logger.warning(
                f"{self.operation} rejected",
                operation=self.operation,
                duration_ms=duration_ms,
                error=str(exc_val),
                error_type=exc_type.__name__,
                **redacted,
            )
        else:
            # Stack traces only outside production
            self.logger.error(
                f"{self.operation} failed",
                operation=self.operation,
                duration_ms=duration_ms,
                error=str(exc_val),
                error_type=exc_type.__name__,
                exc_info=not is_production(),
                **redacted,
            )
