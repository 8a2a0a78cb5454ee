"""
Retry policy for transient SQLite errors.

Operations are retried under a caller-supplied key (for example
"update_message_42") so that distinct logical calls keep separate attempt
budgets. The delay between attempts is fixed: contention on a single local
database file is expected to clear quickly.
"""

import asyncio
import logging
import sqlite3
from typing import Awaitable, Callable, Dict, List, Optional, TypeVar

from sqlalchemy.exc import DBAPIError

from msgcache.errors import TransientStorageError
from msgcache.metrics import record_storage_retry

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAY_SECONDS = 1.0

# Primary result codes; extended codes (e.g. SQLITE_BUSY_SNAPSHOT) share the low byte
_TRANSIENT_SQLITE_CODES = frozenset(
    code
    for code in (
        getattr(sqlite3, "SQLITE_BUSY", None),
        getattr(sqlite3, "SQLITE_LOCKED", None),
    )
    if isinstance(code, int)
)

_TRANSIENT_SUBSTRINGS = (
    "database is locked",
    "busy",
    "no response",
)


def driver_error(error: BaseException) -> BaseException:
    """
    Unwrap a SQLAlchemy DBAPIError to the driver exception.

    Unlike the wrapper, its text carries no SQL statement or parameters.
    """
    if isinstance(error, DBAPIError) and error.orig is not None:
        return error.orig
    return error


def is_transient_error(error: BaseException) -> bool:
    """
    Decide whether a storage error is worth retrying.

    Uses the SQLite result code when the driver exposes one and falls back
    to matching the error text.
    """
    error = driver_error(error)

    code = getattr(error, "sqlite_errorcode", None)
    if isinstance(code, int) and (code & 0xFF) in _TRANSIENT_SQLITE_CODES:
        return True

    message = str(error).lower()
    return any(fragment in message for fragment in _TRANSIENT_SUBSTRINGS)


class RetryPolicy:
    """Bounded fixed-delay retry keyed by operation identity."""

    def __init__(
        self,
        max_retries: int = DEFAULT_MAX_RETRIES,
        delay_seconds: float = DEFAULT_RETRY_DELAY_SECONDS,
    ):
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if delay_seconds < 0:
            raise ValueError("delay_seconds must be >= 0")
        self.max_retries = max_retries
        self.delay_seconds = delay_seconds
        self._attempts: Dict[str, int] = {}

    def pending_keys(self) -> List[str]:
        """Keys that currently hold retry state."""
        return list(self._attempts)

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        key: str,
        label: Optional[str] = None,
    ) -> T:
        """
        Await operation(), retrying transient failures.

        Non-transient errors propagate immediately. After max_retries
        retries the last transient error is raised as TransientStorageError.
        The attempt counter for key is always removed when this returns or
        raises. label names the operation in metrics and defaults to key.
        """
        while True:
            try:
                result = await operation()
            except Exception as e:
                if not is_transient_error(e):
                    self._attempts.pop(key, None)
                    raise

                retries = self._attempts.get(key, 0)
                if retries >= self.max_retries:
                    self._attempts.pop(key, None)
                    logger.error(
                        f"Giving up on {key} after {retries + 1} attempt(s): {driver_error(e)}"
                    )
                    raise TransientStorageError(
                        f"Storage operation {key} failed after {retries + 1} attempt(s): {driver_error(e)}"
                    ) from e

                self._attempts[key] = retries + 1
                logger.warning(
                    f"Transient storage error on {key} "
                    f"(retry {retries + 1}/{self.max_retries}): {driver_error(e)}"
                )
                record_storage_retry(label or key)
                try:
                    await asyncio.sleep(self.delay_seconds)
                except asyncio.CancelledError:
                    self._attempts.pop(key, None)
                    raise
                continue

            self._attempts.pop(key, None)
            return result
