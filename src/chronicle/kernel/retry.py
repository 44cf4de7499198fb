"""
Retry for transient SQLite lock contention.

Only lock errors ("database is locked", "database table is locked") are
retried. Other OperationalErrors such as a missing table are permanent and
surface on the first attempt. Version conflicts are never retried: they
mean another writer won.
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

from chronicle.kernel.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def is_lock_error(exc: BaseException) -> bool:
    """True for the OperationalErrors SQLite raises while another connection holds a lock"""
    return isinstance(exc, sqlite3.OperationalError) and "locked" in str(exc).lower()


def _log_lock_retry(retry_state: RetryCallState) -> None:
    error = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "SQLite lock contention, backing off",
        attempt=retry_state.attempt_number,
        error=str(error),
    )


def retry_on_sqlite_lock(
    max_attempts: int = 3,
    min_wait_ms: int = 50,
    max_wait_ms: int = 1000,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Decorate a store operation so lock errors are retried with exponential backoff

    The last lock error is re-raised once ``max_attempts`` is spent.

    Example:
        @retry_on_sqlite_lock(max_attempts=5)
        def _append_once(...):
            conn.execute("BEGIN IMMEDIATE")
    """
    return retry(
        retry=retry_if_exception(is_lock_error),
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(min=min_wait_ms / 1000.0, max=max_wait_ms / 1000.0),
        before_sleep=_log_lock_retry,
        reraise=True,
    )
