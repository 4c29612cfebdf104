"""
Retry with exponential backoff for SQLite lock contention.

The health server thread and a CLI process can touch the same database
file; SQLite answers concurrent writers with "database is locked" (or
"database is busy"), which clears up after a short wait. Other
OperationalErrors, such as a missing table, are not transient and are
raised immediately.
"""

import sqlite3
from collections.abc import Callable
from typing import TypeVar

from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from sk_budget.kernel.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

_LOCK_MARKERS = ("locked", "busy")


def is_lock_contention(error: BaseException) -> bool:
    """True for the OperationalErrors SQLite raises when another writer holds the file"""
    return isinstance(error, sqlite3.OperationalError) and any(
        marker in str(error).lower() for marker in _LOCK_MARKERS
    )


def _log_retry(retry_state: RetryCallState) -> None:
    error = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "SQLite lock detected, retrying",
        function=getattr(retry_state.fn, "__qualname__", None),
        attempt=retry_state.attempt_number,
        exception=str(error) if error else None,
    )


def retry_on_sqlite_lock(
    max_attempts: int = 3,
    min_wait_ms: int = 100,
    max_wait_ms: int = 1000,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Retry decorator for record-store reads and writes.

    Args:
        max_attempts: Total attempts including the first (default: 3)
        min_wait_ms: First backoff in milliseconds (default: 100)
        max_wait_ms: Backoff ceiling in milliseconds (default: 1000)

    Returns:
        Decorator; the last lock error is re-raised once attempts run out

    Example:
        @retry_on_sqlite_lock()
        def put(self, key, value):
            conn.execute(...)
    """
    return retry(
        retry=retry_if_exception(is_lock_contention),
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(
            multiplier=1,
            min=min_wait_ms / 1000.0,
            max=max_wait_ms / 1000.0,
        ),
        before_sleep=_log_retry,
        reraise=True,
    )
