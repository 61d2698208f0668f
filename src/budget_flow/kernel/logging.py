"""
Structured logging for BudgetFlow.

Each BudgetFlow session binds a short session id into structlog's context
variables. The persistence dispatcher runs writes inside a copy of the
caller's context, so lines logged by the writer thread carry the same id
as the mutation that caused them.
"""

import logging
import os
import secrets
import sys
import time
from typing import Any

import structlog

from budget_flow.kernel.errors import BudgetFlowError

SESSION_KEY = "session_id"

# Personal and financial fields never written to logs
REDACTED_FIELDS = frozenset(
    {
        "user_id",
        "amount",
        "description",
        "income",
        "prior_debt",
        "user_goals",
        "image_data_uri",
    }
)
REDACTED = "***REDACTED***"


def is_production() -> bool:
    """True when ENVIRONMENT=production; development otherwise."""
    return os.getenv("ENVIRONMENT", "development").lower() == "production"


def configure_logging(
    *,
    json_output: bool | None = None,
    log_level: str = "INFO",
) -> None:
    """
    Configure structured logging for the application.

    Logs go to stderr so CLI output on stdout stays machine-readable.

    Args:
        json_output: JSON lines if True, console lines if False.
                    None picks JSON in production only.
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    if json_output is None:
        json_output = is_production()

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, log_level.upper()),
    )

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    if json_output:
        renderers: list[structlog.types.Processor] = [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        renderers = [
            structlog.processors.ExceptionRenderer(),
            structlog.dev.ConsoleRenderer(colors=False),
        ]

    structlog.configure(
        processors=shared_processors + renderers,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Structured logger for a module (pass __name__)"""
    return structlog.get_logger(name)


def new_session_id() -> str:
    """Short random id (64 bits, URL-safe) naming one BudgetFlow session"""
    return secrets.token_urlsafe(8)


def bind_session(session_id: str | None = None) -> str:
    """
    Bind a session id to the current context and return it

    Lines logged afterwards in this context, and in contexts copied from
    it, carry the id.
    """
    sid = session_id or new_session_id()
    structlog.contextvars.bind_contextvars(**{SESSION_KEY: sid})
    return sid


def current_session_id() -> str | None:
    return structlog.contextvars.get_contextvars().get(SESSION_KEY)


def redact_context(context: dict[str, Any]) -> dict[str, Any]:
    """
    Redact sensitive fields from log context.

    Example:
        >>> redact_context({"amount": "12.50", "month_id": "2025-06"})
        {"amount": "***REDACTED***", "month_id": "2025-06"}
    """
    return {k: REDACTED if k in REDACTED_FIELDS else v for k, v in context.items()}


class LogOperation:
    """
    Context manager logging one BudgetFlow operation with its duration

    Outcomes:
    - completed: info
    - rejected (a BudgetFlowError, i.e. bad input or unknown ids): warning,
      no stack trace
    - failed (anything else): error, with stack trace outside production

    Exceptions always propagate.
    """

    def __init__(
        self,
        logger: structlog.stdlib.BoundLogger,
        operation: str,
        **context: Any,
    ):
        self.logger = logger
        self.operation = operation
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
        fields = {
            "operation": self.operation,
            "duration_ms": round((time.perf_counter() - self.start_time) * 1000, 2),
            **redact_context(self.context),
        }

        if exc_val is None:
            self.logger.info(f"{self.operation} completed", **fields)
        elif isinstance(exc_val, BudgetFlowError):
            self.logger.warning(
                f"{self.operation} rejected",
                error=str(exc_val),
                error_type=type(exc_val).__name__,
                **fields,
            )
        else:
            self.logger.error(
                f"{self.operation} failed",
                error=str(exc_val),
                exc_info=not is_production(),
                **fields,
            )
