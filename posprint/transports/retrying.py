"""
Retry decorator for a single transport.

Dispatch itself never retries; wrap a transport in ``RetryingTransport`` to
give it exponential backoff before the dispatcher moves on.
"""

import time
from typing import Callable, Optional

from posprint.utils.errors import TransportError
from posprint.utils.retry import RetryConfig, execute_with_retry
from .base import Transport, TransportOutcome


class RetryingTransport(Transport):
    """Retry the wrapped transport while its failures look transient."""

    def __init__(
        self,
        inner: Transport,
        config: Optional[RetryConfig] = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        self.inner = inner
        self.config = config or RetryConfig()
        self._sleep = sleep

    @property
    def name(self) -> str:
        return self.inner.name

    def attempt(self, printer_name: str, payload: bytes) -> TransportOutcome:
        def operation() -> TransportOutcome:
            outcome = self.inner.attempt(printer_name, payload)
            if not outcome:
                raise TransportError(self.inner.name, outcome.detail)
            return outcome

        result = execute_with_retry(
            operation,
            config=self.config,
            operation_name=f"{self.inner.name} attempt",
            sleep=self._sleep
        )
        if result.success:
            return result.data

        error = result.final_error
        reason = error.reason if isinstance(error, TransportError) else str(error)
        if result.total_attempts > 1:
            reason = f"{reason} (after {result.total_attempts} attempts)"
        return TransportOutcome(False, reason)
