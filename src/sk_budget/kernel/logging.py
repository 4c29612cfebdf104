"""
Structured logging for the SK Budget Tracker.

Every CLI run and health-server request gets a correlation id, so the
events one allocation produces (validation, ledger write, metrics) can be
grouped together. Console output in development, JSON in production.
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
    "correlation_id", default=""
)

# Keys whose values never reach the logs
REDACTED_FIELDS = frozenset({"content", "password", "token", "secret", "api_key"})
REDACTED = "***REDACTED***"


def generate_correlation_id() -> str:
    """22-character URL-safe id (128 random bits)"""
    return secrets.token_urlsafe(16)


def get_correlation_id() -> str:
    """Current correlation id; one is created on first use in a context"""
    if not correlation_id_var.get():
        correlation_id_var.set(generate_correlation_id())
    return correlation_id_var.get()


def set_correlation_id(correlation_id: str) -> None:
    correlation_id_var.set(correlation_id)


def add_correlation_id(
    logger: logging.Logger, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """structlog processor stamping the correlation id"""
    event_dict["correlation_id"] = get_correlation_id()
    return event_dict


def is_production() -> bool:
    """True when ENVIRONMENT=production (default: development)"""
    return os.getenv("ENVIRONMENT", "development").lower() == "production"


def configure_logging(
    *,
    json_output: bool | None = None,
    log_level: str | None = None,
) -> None:
    """
    Configure structlog on top of stdlib logging.

    Logs always go to stderr; stdout belongs to CLI output (including
    `--json` payloads).

    Args:
        json_output: JSON lines if True, console if False.
            Defaults to is_production().
        log_level: DEBUG / INFO / WARNING / ERROR.
            Defaults to $SK_BUDGET_LOG_LEVEL, then INFO.
    """
    if json_output is None:
        json_output = is_production()
    level_name = (log_level or os.getenv("SK_BUDGET_LOG_LEVEL", "INFO")).upper()
    level = getattr(logging, level_name)

    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=level)
    logging.getLogger("werkzeug").setLevel(logging.WARNING)

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        add_correlation_id,
    ]
    if json_output:
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors += [
            structlog.processors.ExceptionRenderer(),
            structlog.dev.ConsoleRenderer(colors=False),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def redact_context(context: dict[str, Any]) -> dict[str, Any]:
    """
    Replace sensitive values before logging.

    Step documents count as sensitive: resolutions and vouchers carry names
    and signatures of council members.

    Example:
        >>> redact_context({"content": "<p>Resolution...</p>", "step": "planning"})
        {'content': '***REDACTED***', 'step': 'planning'}
    """
    return {k: REDACTED if k in REDACTED_FIELDS else v for k, v in context.items()}


class LogOperation:
    """
    Time a block and log its outcome.

    Logs "<operation> started" at DEBUG, then "<operation> completed" at
    INFO or "<operation> failed" at ERROR. Fields added with note() inside
    the block are attached to the completion event.

    Example:
        with LogOperation(logger, "replace_catalog", categories=12) as op:
            report = ...
            op.note(clean=report.is_clean)
    """

    def __init__(
        self,
        logger: structlog.stdlib.BoundLogger,
        operation: str,
        **context: Any,
    ) -> None:
        self.logger = logger
        self.operation = operation
        self.context = redact_context(context)
        self.outcome: dict[str, Any] = {}
        self._started = 0.0

    def note(self, **fields: Any) -> None:
        """Attach result fields to the completion event"""
        self.outcome.update(redact_context(fields))

    def __enter__(self) -> "LogOperation":
        self._started = time.perf_counter()
        self.logger.debug(
            f"{self.operation} started", operation=self.operation, **self.context
        )
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        fields = {
            "operation": self.operation,
            "duration_ms": round((time.perf_counter() - self._started) * 1000, 2),
            **self.context,
        }
        if exc_type is None:
            self.logger.info(f"{self.operation} completed", **{**fields, **self.outcome})
        else:
            # Stack traces only in development
            self.logger.error(
                f"{self.operation} failed", exc_info=not is_production(), **fields
            )
