"""
RetryPolicy module for bounded retry of transient network failures
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, TypeVar

import requests

logger = logging.getLogger(__name__)

T = TypeVar('T')

# Message fragments that mark an error as a transient network failure
TRANSIENT_SIGNATURES = ('econnreset', 'connection reset', 'fetch failed', 'network')


class PermanentAPIError(Exception):
    """Raised when API requests fail permanently after all retries"""

    def __init__(self, message: str, attempts: int = 0, last_error: Exception = None):
        super().__init__(message)
        self.attempts = attempts
        self.last_error = last_error


def is_transient_error(error: Exception) -> bool:
    """
    Classify an exception as a transient network failure

    Connection resets, timeouts and broken chunked transfers are transient,
    as is any error whose message carries a known network signature
    (including HTTP status errors whose body carries one).
    """
    if isinstance(error, (requests.exceptions.ConnectionError,
                          requests.exceptions.Timeout,
                          requests.exceptions.ChunkedEncodingError)):
        return True
    message = str(error).lower()
    return any(signature in message for signature in TRANSIENT_SIGNATURES)


def linear_backoff(step_seconds: float) -> Callable[[int], float]:
    """Return a backoff function that waits attempt * step_seconds"""
    def backoff(attempt: int) -> float:
        return attempt * step_seconds
    return backoff


@dataclass
class RetryPolicy:
    """Retry a callable on transient errors with a bounded number of attempts"""
    max_attempts: int = 4
    backoff: Callable[[int], float] = field(default_factory=lambda: linear_backoff(0.3))
    is_transient: Callable[[Exception], bool] = is_transient_error

    def execute(self, operation: Callable[[], T]) -> T:
        """
        Run operation, retrying transient failures

        Args:
            operation: Zero-argument callable performing one attempt

        Returns:
            Whatever operation returns on the first successful attempt

        Raises:
            PermanentAPIError: If a transient error persists on the final attempt
            Exception: Any non-transient error, re-raised immediately
        """
        attempt = 1
        while True:
            try:
                return operation()
            except Exception as e:
                if not self.is_transient(e):
                    raise
                if attempt >= self.max_attempts:
                    raise PermanentAPIError(
                        f"Failed after {attempt} attempts. Last error: {e}",
                        attempts=attempt,
                        last_error=e
                    ) from e

                delay = self.backoff(attempt)
                logger.warning(
                    f"Transient error, retry {attempt}/{self.max_attempts - 1} after {delay:.2f}s: {e}"
                )
                time.sleep(delay)
                attempt += 1
