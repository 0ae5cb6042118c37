import logging
import asyncio
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional
from functools import wraps
from datetime import datetime

from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

import config
from db import Database, session_commit, session_rollback, begin_write
from exceptions.base import ShopException

logger = logging.getLogger(__name__)

# Driver messages that mean "someone else holds the lock", per backend
LOCK_ERROR_MARKERS = (
    "database is locked",           # SQLite busy timeout
    "database table is locked",
    "lock timeout",                 # PostgreSQL lock_timeout
    "Lock wait timeout",            # MySQL
    "could not obtain lock",
    "try restarting transaction",
)


class TransactionLockTimeout(ShopException):
    """
    Raised when a transaction cannot acquire its locks in time.

    Transient: callers may retry the whole operation.
    """

    kind = "TransactionTimeout"
    http_status = 503
    retryable = True

    def __init__(self, operation: str, timeout: int):
        super().__init__(
            f"Could not acquire database lock for '{operation}' within {timeout}s",
            details={'operation': operation, 'timeout': timeout}
        )
        self.operation = operation
        self.timeout = timeout


def is_lock_error(error: Exception) -> bool:
    return isinstance(error, OperationalError) and any(marker in str(error) for marker in LOCK_ERROR_MARKERS)


class TransactionManager:
    """
    Utility class for managing database transactions with rollback
    and retry logic for race condition prevention.

    Every mutating domain operation runs inside atomic_transaction(). The
    storage engine's isolation is the only concurrency control: there is no
    in-process locking.
    """

    # Retry configuration
    MAX_RETRIES = config.TRANSACTION_MAX_RETRIES
    RETRY_DELAY_BASE = 0.1  # Base delay in seconds

    @staticmethod
    @asynccontextmanager
    async def atomic_transaction(database: Database, operation: str = "transaction",
                                 timeout: Optional[int] = None) -> AsyncGenerator[AsyncSession, None]:
        """
        Context manager for atomic database transactions.

        Commits when the block exits normally; rolls back and re-raises on any
        exception. Lock acquisition failures surface as TransactionLockTimeout.

        Usage:
            async with TransactionManager.atomic_transaction(database, "checkout") as session:
                # Database operations here, no commit needed
                await session.execute(...)
        """
        timeout = timeout or database.timeout
        async with database.get_db_session() as session:
            transaction_start = datetime.now()
            try:
                await begin_write(session, timeout)
                logger.debug(f"Transaction '{operation}' started at {transaction_start}")

                yield session

                await session_commit(session)
                duration = (datetime.now() - transaction_start).total_seconds()
                if duration > timeout:
                    logger.warning(f"Transaction '{operation}' exceeded timeout: {duration:.2f}s > {timeout}s")
                logger.debug(f"Transaction '{operation}' committed successfully in {duration:.2f}s")

            except Exception as e:
                try:
                    await session_rollback(session)
                    logger.info(f"Transaction '{operation}' rolled back due to error: {str(e)}")
                except Exception as rollback_error:
                    logger.critical(f"Failed to rollback transaction '{operation}': {str(rollback_error)}")
                if is_lock_error(e):
                    raise TransactionLockTimeout(operation, timeout) from e
                raise

    @staticmethod
    @asynccontextmanager
    async def read_session(database: Database, operation: str = "read") -> AsyncGenerator[AsyncSession, None]:
        """
        Session for read-only work.

        The transaction stays deferred, so readers do not queue behind writers
        for the write lock. A busy database still surfaces as TransactionLockTimeout.
        """
        async with database.get_db_session() as session:
            try:
                yield session
            except OperationalError as e:
                if is_lock_error(e):
                    logger.info(f"Read '{operation}' hit a locked database: {str(e)}")
                    raise TransactionLockTimeout(operation, database.timeout) from e
                raise

    @staticmethod
    def with_retry(max_retries: Optional[int] = None, delay_base: Optional[float] = None):
        """
        Decorator for automatic retry of database operations with exponential backoff.

        Only transient lock failures are retried; domain errors propagate at once.

        Args:
            max_retries: Maximum number of retry attempts
            delay_base: Base delay for exponential backoff
        """
        max_retries = TransactionManager.MAX_RETRIES if max_retries is None else max_retries
        delay_base = delay_base or TransactionManager.RETRY_DELAY_BASE

        def decorator(func):
            @wraps(func)
            async def wrapper(*args, **kwargs):
                last_exception = None

                for attempt in range(max_retries + 1):
                    try:
                        return await func(*args, **kwargs)
                    except TransactionLockTimeout as e:
                        last_exception = e

                        if attempt == max_retries:
                            logger.error(f"Function {func.__name__} failed after {max_retries} retries: {str(e)}")
                            break

                        # Exponential backoff with jitter
                        delay = delay_base * (2 ** attempt) + (delay_base * 0.1 * attempt)
                        logger.warning(f"Attempt {attempt + 1} failed for {func.__name__}, retrying in {delay:.2f}s: {str(e)}")
                        await asyncio.sleep(delay)

                raise last_exception

            return wrapper
        return decorator
