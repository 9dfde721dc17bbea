"""
Retry policy for SQLite writes.

busy_timeout covers most contention; this handles the "database is locked"
errors that still escape it under concurrent drains.
"""

from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import aiosqlite
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from stockledger.config import get_logger, get_settings

logger = get_logger(__name__)

T = TypeVar("T")


def _log_retry(retry_state: RetryCallState) -> None:
    """Log retry attempts."""
    logger.warning(
        "sqlite_write_retry",
        attempt=retry_state.attempt_number,
        error=str(retry_state.outcome.exception()) if retry_state.outcome else None,
    )


def _is_locked(exc: BaseException) -> bool:
    """True for "database is locked" / "database table is locked" only."""
    return isinstance(exc, aiosqlite.OperationalError) and "locked" in str(exc)


def _get_retry_decorator() -> Any:
    settings = get_settings()
    return retry(
        stop=stop_after_attempt(max(1, settings.storage.write_retries)),
        wait=wait_exponential(multiplier=0.05, min=0.05, max=1.0),
        retry=retry_if_exception(_is_locked),
        before_sleep=_log_retry,
        reraise=True,
    )


async def with_write_retry(
    operation: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any
) -> T:
    """Run an async write, retrying while the database is locked."""
    return await _get_retry_decorator()(operation)(*args, **kwargs)
