"""
Generic retry with exponential backoff and jitter.

Dispatch deliberately moves on to a different transport instead of retrying
a failing one. This module is for callers that do want retries around a
single operation: printer enumeration uses it, and ``RetryingTransport``
applies it to one transport strategy.
"""

import random
import time
from dataclasses import dataclass, field, replace
from typing import Callable, Generic, List, Optional, Tuple, TypeVar
import structlog

from posprint.config.constants import RetrySettings

logger = structlog.get_logger()

T = TypeVar("T")


@dataclass(frozen=True)
class RetryConfig:
    """Retry policy shape."""

    max_attempts: int = RetrySettings.MAX_ATTEMPTS
    """Total attempts including the first one"""

    base_delay: float = RetrySettings.BASE_DELAY_SECONDS
    """Delay before the second attempt (seconds)"""

    max_delay: float = RetrySettings.MAX_DELAY_SECONDS
    """Upper bound for any single delay (seconds)"""

    multiplier: float = RetrySettings.BACKOFF_MULTIPLIER
    """Exponential backoff multiplier"""

    jitter_factor: float = RetrySettings.JITTER_FACTOR
    """Random jitter (±factor of the delay); 0 disables jitter"""

    retryable_errors: Tuple[str, ...] = RetrySettings.RETRYABLE_ERRORS
    """Substrings of the error message or type name that allow a retry"""

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("delays must not be negative")

    @classmethod
    def for_detection(cls) -> "RetryConfig":
        """Policy used for printer enumeration."""
        return cls(
            max_attempts=RetrySettings.DETECTION_MAX_ATTEMPTS,
            base_delay=RetrySettings.DETECTION_BASE_DELAY_SECONDS,
            max_delay=RetrySettings.DETECTION_MAX_DELAY_SECONDS,
            retryable_errors=RetrySettings.DETECTION_RETRYABLE_ERRORS,
        )

    def with_overrides(self, **changes) -> "RetryConfig":
        return replace(self, **changes)


@dataclass
class RetryAttemptResult(Generic[T]):
    """Outcome of one attempt."""

    attempt_number: int
    success: bool
    data: Optional[T] = None
    error: Optional[BaseException] = None
    delay_seconds: float = 0.0
    elapsed_seconds: float = 0.0


@dataclass
class RetryOperationResult(Generic[T]):
    """Aggregate outcome of a retried operation."""

    success: bool
    data: Optional[T] = None
    final_error: Optional[BaseException] = None
    attempts: List[RetryAttemptResult[T]] = field(default_factory=list)
    total_elapsed_seconds: float = 0.0

    @property
    def total_attempts(self) -> int:
        return len(self.attempts)


def calculate_delay(attempt: int, config: RetryConfig, rng: Callable[[], float] = random.random) -> float:
    """Calculate delay after a failed attempt using exponential backoff with jitter.

    Args:
        attempt: Failed attempt number (1-indexed)
        config: Retry policy
        rng: Source of uniform [0, 1) values

    Returns:
        Delay in seconds with jitter applied
    """
    delay = config.base_delay * (config.multiplier ** (attempt - 1))
    delay = min(delay, config.max_delay)

    if config.jitter_factor:
        jitter = delay * config.jitter_factor * (2 * rng() - 1)
        delay = max(0.0, delay + jitter)

    return delay


def is_retryable(error: BaseException, config: RetryConfig) -> bool:
    """Whether ``error`` matches one of the configured retryable patterns."""
    message = str(error).lower()
    error_type = type(error).__name__.lower()
    return any(
        pattern.lower() in message or pattern.lower() in error_type
        for pattern in config.retryable_errors
    )


def execute_with_retry(
    operation: Callable[[], T],
    config: Optional[RetryConfig] = None,
    operation_name: str = "operation",
    sleep: Callable[[float], None] = time.sleep,
) -> RetryOperationResult[T]:
    """
    Run ``operation`` until it returns, retrying retryable errors.

    Non-retryable errors and the last failed attempt end the loop. The
    function itself never raises the operation's error; it is returned in
    ``final_error``.

    Args:
        operation: Zero-argument callable
        config: Retry policy (defaults to ``RetryConfig()``)
        operation_name: Name used in log events
        sleep: Sleep function, injectable for tests

    Returns:
        RetryOperationResult describing every attempt
    """
    config = config or RetryConfig()
    attempts: List[RetryAttemptResult[T]] = []
    start = time.perf_counter()

    for attempt in range(1, config.max_attempts + 1):
        attempt_start = time.perf_counter()
        try:
            data = operation()
        except Exception as e:
            record = RetryAttemptResult(
                attempt_number=attempt,
                success=False,
                error=e,
                elapsed_seconds=time.perf_counter() - attempt_start
            )
            attempts.append(record)

            if attempt == config.max_attempts or not is_retryable(e, config):
                logger.warning(
                    "Retry operation gave up",
                    operation=operation_name,
                    attempt=attempt,
                    max_attempts=config.max_attempts,
                    error=str(e),
                    error_type=type(e).__name__
                )
                return RetryOperationResult(
                    success=False,
                    final_error=e,
                    attempts=attempts,
                    total_elapsed_seconds=time.perf_counter() - start
                )

            delay = calculate_delay(attempt, config)
            record.delay_seconds = delay
            logger.info(
                "Retry operation failed, retrying",
                operation=operation_name,
                attempt=attempt,
                retry_delay_seconds=round(delay, 2),
                error=str(e)
            )
            sleep(delay)
            continue

        attempts.append(RetryAttemptResult(
            attempt_number=attempt,
            success=True,
            data=data,
            elapsed_seconds=time.perf_counter() - attempt_start
        ))
        if attempt > 1:
            logger.info("Retry operation succeeded", operation=operation_name, attempt=attempt)
        return RetryOperationResult(
            success=True,
            data=data,
            attempts=attempts,
            total_elapsed_seconds=time.perf_counter() - start
        )

    # max_attempts >= 1 guarantees a return inside the loop
    raise AssertionError("unreachable")
