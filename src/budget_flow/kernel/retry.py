"""
Retry logic with exponential backoff for transient failures.

Two uses: the SQLite repository retries lock contention internally, and the
persistence dispatcher retries whole month writes when the policy asks for
more than one attempt. The default policy makes a single attempt, so a
failed write stays failed until the next write of the same month.
"""

import sqlite3
from collections.abc import Callable
from typing import TypeVar

from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from budget_flow.kernel.errors import PersistenceError
from budget_flow.kernel.logging import get_logger
from budget_flow.kernel.policy import BudgetPolicy

logger = get_logger(__name__)

T = TypeVar("T")

# Failures worth another attempt; validation bugs are not among them
TRANSIENT_WRITE_ERRORS: tuple[type[Exception], ...] = (
    PersistenceError,
    sqlite3.OperationalError,
    OSError,
)


def _log_retry(message: str) -> Callable[[RetryCallState], None]:
    def before_sleep(retry_state: RetryCallState) -> None:
        logger.warning(
            message,
            attempt=retry_state.attempt_number,
            exception=str(retry_state.outcome.exception()) if retry_state.outcome else None,
        )

    return before_sleep


def retry_on_sqlite_lock(
    max_attempts: int = 3,
    min_wait_ms: int = 50,
    max_wait_ms: int = 500,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Retry decorator for SQLite lock contention (OperationalError).

    The background writer and a CLI process may touch the same database file;
    "database is locked" is retried with exponential backoff.

    Example:
        @retry_on_sqlite_lock()
        def _write(...):
            conn.execute(...)
    """
    return retry(
        retry=retry_if_exception_type(sqlite3.OperationalError),
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(
            multiplier=1,
            min=min_wait_ms / 1000.0,
            max=max_wait_ms / 1000.0,
        ),
        before_sleep=_log_retry("SQLite lock detected, retrying"),
        reraise=True,
    )


def with_write_policy(
    save: Callable[..., T], policy: BudgetPolicy
) -> Callable[..., T]:
    """
    Wrap a month write according to the persistence policy.

    With persistence_max_attempts == 1 the write is returned untouched.

    Args:
        save: Callable performing one write attempt
        policy: Policy holding attempt count and backoff bounds

    Returns:
        The callable, retried on transient write errors when configured
    """
    if policy.persistence_max_attempts <= 1:
        return save

    return retry(
        retry=retry_if_exception_type(TRANSIENT_WRITE_ERRORS),
        stop=stop_after_attempt(policy.persistence_max_attempts),
        wait=wait_exponential(
            multiplier=1,
            min=policy.persistence_min_wait_ms / 1000.0,
            max=policy.persistence_max_wait_ms / 1000.0,
        ),
        before_sleep=_log_retry("Month write failed, retrying"),
        reraise=True,
    )(save)
