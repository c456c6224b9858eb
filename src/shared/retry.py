"""Bounded retry with pluggable backoff.

Kept free of queue, status-service and encoder specifics so callers decide
what is retried and how long to wait between attempts.
"""

import time
from typing import Any, Callable

from aws_lambda_powertools import Logger

from .exceptions import RetryExhaustedError

logger = Logger(service="video-worker")


def linear_backoff(unit: float) -> Callable[[int], float]:
    """Backoff where attempt ``i`` (1-based) waits ``i * unit`` seconds."""

    def _delay(attempt: int) -> float:
        return attempt * unit

    return _delay


def retry_with_backoff(
    func: Callable[[], Any],
    max_attempts: int,
    backoff: Callable[[int], float],
    sleep: Callable[[float], None] = time.sleep,
    retry_on: tuple[type[Exception], ...] = (Exception,),
) -> Any:
    """Call ``func`` until it succeeds or ``max_attempts`` calls have failed.

    No sleep happens after the final attempt.

    Args:
        func: Zero-argument callable to execute
        max_attempts: Total number of calls allowed (at least 1)
        backoff: Maps the 1-based number of the failed attempt to a delay in seconds
        sleep: Sleep function, replaceable in tests
        retry_on: Exception types that trigger another attempt; others propagate

    Returns:
        Result of the first successful call

    Raises:
        RetryExhaustedError: If every attempt failed, wrapping the last error
        ValueError: If max_attempts is less than 1
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    last_error: Exception | None = None

    for attempt in range(1, max_attempts + 1):
        try:
            return func()
        except retry_on as e:
            last_error = e

            if attempt < max_attempts:
                delay = backoff(attempt)
                logger.warning(
                    "Attempt failed, retrying",
                    extra={
                        "attempt": attempt,
                        "max_attempts": max_attempts,
                        "wait_seconds": delay,
                        "error": str(e),
                    },
                )
                sleep(delay)

    raise RetryExhaustedError(max_attempts, last_error)
