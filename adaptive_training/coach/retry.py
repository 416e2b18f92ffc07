"""Retry with exponential backoff and a per-attempt timeout.

The clock and sleep functions are injected so tests can simulate delays
without sleeping. Every attempt runs in a worker thread and is abandoned
when it exceeds ``timeout_seconds``; a timeout counts as a failed attempt.

Only transient failures (timeouts, dropped connections, rate limits, 5xx
responses) are retried. Anything else, such as a missing API key or an
authentication error, fails on the first attempt.
"""

import re
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor, wait
from typing import TypeVar

from loguru import logger

from adaptive_training.plans.errors import ExternalServiceError

T = TypeVar("T")

TRANSIENT_ERROR_TYPES = frozenset({
    "APIConnectionError",
    "APITimeoutError",
    "RateLimitError",
    "InternalServerError",
    "ServiceUnavailableError",
})
TRANSIENT_MESSAGE_PATTERN = re.compile(
    r"rate limit|timed out|timeout|connection (?:reset|refused|error|aborted)|service unavailable|\b(?:429|500|502|503|504)\b"
)


def is_transient_error(error: Exception) -> bool:
    """Check if an error is worth retrying.

    Args:
        error: Exception raised by one attempt

    Returns:
        True for timeouts, connection failures, rate limits and server errors
    """
    if isinstance(error, (TimeoutError, ConnectionError)):
        return True
    if type(error).__name__ in TRANSIENT_ERROR_TYPES:
        return True
    return bool(TRANSIENT_MESSAGE_PATTERN.search(str(error).lower()))


def call_with_timeout(fn: Callable[[], T], timeout_seconds: float) -> T:
    """Run ``fn`` and raise TimeoutError if it does not finish in time."""
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="completion")
    future = executor.submit(fn)
    try:
        done, _ = wait([future], timeout=timeout_seconds)
        if not done:
            future.cancel()
            raise TimeoutError(f"Call exceeded timeout of {timeout_seconds}s")
        return future.result()
    finally:
        executor.shutdown(wait=False, cancel_futures=True)


class RetryPolicy:
    """Exponential backoff: the delay after attempt ``n`` (0-based) is ``base * 2**n``."""

    def __init__(
        self,
        *,
        max_retries: int,
        backoff_base_seconds: float,
        timeout_seconds: float,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_retries = max_retries
        self.backoff_base_seconds = backoff_base_seconds
        self.timeout_seconds = timeout_seconds
        self.sleep = sleep
        self.clock = clock

    def backoff_delay(self, attempt: int) -> float:
        return self.backoff_base_seconds * 2**attempt

    def call(self, fn: Callable[[], T], *, operation: str) -> T:
        """Call ``fn`` with retries.

        Args:
            fn: Zero-argument callable performing one attempt
            operation: Name used in logs and errors

        Returns:
            The first successful result

        Raises:
            ExternalServiceError: If every attempt failed or timed out, or an
                attempt failed with a non-transient error
        """
        started = self.clock()
        last_error: Exception | None = None
        for attempt in range(self.max_retries + 1):
            try:
                return call_with_timeout(fn, self.timeout_seconds)
            except Exception as e:
                last_error = e
                if not is_transient_error(e):
                    logger.error(
                        "{operation} failed with non-retryable error: {error}",
                        operation=operation,
                        error=f"{type(e).__name__}: {e}",
                        attempt=attempt + 1,
                    )
                    raise ExternalServiceError(
                        operation,
                        f"{operation} failed with non-retryable error: {type(e).__name__}: {e}",
                        attempts=attempt + 1,
                    ) from e
                if attempt < self.max_retries:
                    delay = self.backoff_delay(attempt)
                    logger.warning(
                        "{operation} failed ({error}). Retrying in {delay:.1f}s...",
                        operation=operation,
                        error=f"{type(e).__name__}: {e}",
                        delay=delay,
                        attempt=attempt + 1,
                        max_attempts=self.max_retries + 1,
                    )
                    self.sleep(delay)

        elapsed = self.clock() - started
        raise ExternalServiceError(
            operation,
            f"{operation} failed after {self.max_retries + 1} attempt(s) in {elapsed:.1f}s: {last_error}",
            attempts=self.max_retries + 1,
        ) from last_error
