"""
Timing utilities for measuring subprocess-bound operations.
"""

import time
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, Optional
import structlog

logger = structlog.get_logger()


class Stopwatch:
    """Wall-clock start time plus a monotonic elapsed counter."""

    def __init__(self):
        self.started_at = datetime.now()
        self._start = time.perf_counter()
        self._end: Optional[float] = None

    def stop(self) -> None:
        if self._end is None:
            self._end = time.perf_counter()

    @property
    def elapsed_seconds(self) -> float:
        end = self._end if self._end is not None else time.perf_counter()
        return end - self._start

    @property
    def elapsed_ms(self) -> int:
        return int(round(self.elapsed_seconds * 1000))


@contextmanager
def timed_operation(operation_name: str, log_level: str = "debug", **context) -> Iterator[Stopwatch]:
    """
    Context manager for timing synchronous operations.

    Usage:
        with timed_operation("COPY attempt", printer="RONGTA-80") as watch:
            strategy.attempt(...)
        watch.elapsed_ms

    Args:
        operation_name: Name of the operation being timed
        log_level: Log level for timing output (default: "debug")
        **context: Extra key/value pairs added to the log event
    """
    watch = Stopwatch()
    try:
        yield watch
    finally:
        watch.stop()
        log_func = getattr(logger, log_level, logger.debug)
        log_func(
            operation_name,
            duration_ms=watch.elapsed_ms,
            duration_seconds=round(watch.elapsed_seconds, 2),
            **context
        )
