"""
Retry utilities for callers that want bounded retries around transient failures.

None of the toolkit clients retry on their own: the eligibility service is a
single point of failure for the whole voting flow, so the retry policy is left
to the caller. These helpers provide that policy.

Exception Handling:
- By default, retries on RetryableException and its subclasses
  (TransportException, OperationTimeoutException) plus raw network/RPC errors
- NonRetryableException is never retried (propagates immediately)
- Can customize retryable_exceptions per operation
"""

import asyncio
import logging
import time
from functools import wraps
from typing import Any, Callable, Optional, Tuple, Type, TypeVar

from web3.exceptions import BlockNotFound, TransactionNotFound, TimeExhausted

from zkdao_toolkit.shared.exceptions import RetryableException

T = TypeVar("T")

logger = logging.getLogger(__name__)

# ContractLogicError (a revert) is never retried
DEFAULT_RETRYABLE_EXCEPTIONS: Tuple[Type[Exception], ...] = (
    RetryableException,
    ConnectionError,
    TimeoutError,
    TransactionNotFound,
    BlockNotFound,
    TimeExhausted,
)


def _backoff_delay(
    attempt: int, base_delay: float, max_delay: float, exponential: bool
) -> float:
    if exponential:
        return min(base_delay * (2**attempt), max_delay)
    return base_delay


def with_retry(
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    exponential: bool = True,
    retryable_exceptions: Optional[Tuple[Type[Exception], ...]] = None,
    on_retry: Optional[Callable[[Exception, int], None]] = None,
) -> Callable:
    """
    Decorator for retrying async functions with exponential backoff.

    Args:
        max_attempts: Maximum number of attempts (default: 3)
        base_delay: Initial delay between retries in seconds (default: 1.0)
        max_delay: Maximum delay between retries in seconds (default: 30.0)
        exponential: Use exponential backoff (default: True)
        retryable_exceptions: Tuple of exception types to retry on
        on_retry: Optional callback called on each retry with (exception, attempt)

    Example:
        @with_retry(max_attempts=3, base_delay=0.5)
        async def fetch_proof():
            return await client.get_proof(space, proposal_id, voter)
    """
    if retryable_exceptions is None:
        retryable_exceptions = DEFAULT_RETRYABLE_EXCEPTIONS

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            for attempt in range(max_attempts):
                try:
                    return await func(*args, **kwargs)
                except retryable_exceptions as e:
                    if attempt >= max_attempts - 1:
                        raise

                    delay = _backoff_delay(
                        attempt, base_delay, max_delay, exponential
                    )
                    logger.warning(
                        f"Attempt {attempt + 1}/{max_attempts} failed for "
                        f"{func.__name__}: {e}. Retrying in {delay:.1f}s..."
                    )
                    if on_retry:
                        on_retry(e, attempt + 1)

                    await asyncio.sleep(delay)

            raise RuntimeError("with_retry requires max_attempts >= 1")

        return wrapper

    return decorator


async def retry_async_operation(
    operation: Callable[..., Any],
    *args: Any,
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    exponential: bool = True,
    retryable_exceptions: Optional[Tuple[Type[Exception], ...]] = None,
    operation_name: Optional[str] = None,
    **kwargs: Any,
) -> Any:
    """
    Retry an async operation with configurable backoff.

    Functional alternative to the decorator when a single call site needs
    retries, e.g.:

        proof = await retry_async_operation(
            client.get_proof, space, proposal_id, voter,
            max_attempts=5, operation_name="get_proof",
        )
    """
    if retryable_exceptions is None:
        retryable_exceptions = DEFAULT_RETRYABLE_EXCEPTIONS

    name = operation_name or getattr(operation, "__name__", "operation")

    for attempt in range(max_attempts):
        try:
            return await operation(*args, **kwargs)
        except retryable_exceptions as e:
            if attempt >= max_attempts - 1:
                raise

            delay = _backoff_delay(attempt, base_delay, max_delay, exponential)
            logger.warning(
                f"Attempt {attempt + 1}/{max_attempts} failed for "
                f"{name}: {e}. Retrying in {delay:.1f}s..."
            )
            await asyncio.sleep(delay)

    raise RuntimeError("retry_async_operation requires max_attempts >= 1")


def retry_sync_operation(
    operation: Callable[..., Any],
    *args: Any,
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    exponential: bool = True,
    retryable_exceptions: Optional[Tuple[Type[Exception], ...]] = None,
    operation_name: Optional[str] = None,
    **kwargs: Any,
) -> Any:
    """Retry a synchronous operation (typically an RPC read) with backoff."""
    if retryable_exceptions is None:
        retryable_exceptions = DEFAULT_RETRYABLE_EXCEPTIONS

    name = operation_name or getattr(operation, "__name__", "operation")

    for attempt in range(max_attempts):
        try:
            return operation(*args, **kwargs)
        except retryable_exceptions as e:
            if attempt >= max_attempts - 1:
                raise

            delay = _backoff_delay(attempt, base_delay, max_delay, exponential)
            logger.warning(
                f"Attempt {attempt + 1}/{max_attempts} failed for "
                f"{name}: {e}. Retrying in {delay:.1f}s..."
            )
            time.sleep(delay)

    raise RuntimeError("retry_sync_operation requires max_attempts >= 1")


class RetryConfig:
    """
    Configuration class for retry behavior.

    Can be used to share retry settings across multiple operations.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        exponential: bool = True,
        retryable_exceptions: Optional[Tuple[Type[Exception], ...]] = None,
    ):
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.exponential = exponential
        self.retryable_exceptions = (
            retryable_exceptions or DEFAULT_RETRYABLE_EXCEPTIONS
        )

    def decorator(self) -> Callable:
        """Create a with_retry decorator using this config."""
        return with_retry(
            max_attempts=self.max_attempts,
            base_delay=self.base_delay,
            max_delay=self.max_delay,
            exponential=self.exponential,
            retryable_exceptions=self.retryable_exceptions,
        )

    async def run(self, operation: Callable[..., Any], *args: Any, **kwargs: Any):
        """Run an async operation under this config."""
        return await retry_async_operation(
            operation,
            *args,
            max_attempts=self.max_attempts,
            base_delay=self.base_delay,
            max_delay=self.max_delay,
            exponential=self.exponential,
            retryable_exceptions=self.retryable_exceptions,
            **kwargs,
        )


HTTP_RETRY_CONFIG = RetryConfig(
    max_attempts=3,
    base_delay=0.5,
    max_delay=5.0,
    exponential=True,
)

RPC_RETRY_CONFIG = RetryConfig(
    max_attempts=3,
    base_delay=1.0,
    max_delay=10.0,
    exponential=True,
)
