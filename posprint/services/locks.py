"""
Printer lock registry.

Serializes dispatches per printer and makes a spooler reset exclusive: a
reset waits for in-flight dispatches to finish and holds off new ones until
it completes.
"""

import threading
from contextlib import contextmanager
from typing import Iterator, Optional, Set
import structlog

from posprint.utils.errors import PrinterBusyError

logger = structlog.get_logger()


class PrinterLockRegistry:
    """Per-printer dispatch locks plus a process-wide spooler reset lock."""

    def __init__(self, timeout_seconds: float = 120.0):
        """
        Args:
            timeout_seconds: Default wait before giving up with PrinterBusyError
        """
        self.timeout_seconds = timeout_seconds
        self._condition = threading.Condition()
        self._busy: Set[str] = set()
        self._resetting = False

    @property
    def active_printers(self) -> Set[str]:
        with self._condition:
            return set(self._busy)

    @property
    def reset_in_progress(self) -> bool:
        with self._condition:
            return self._resetting

    @contextmanager
    def printer(self, printer_name: str, timeout: Optional[float] = None) -> Iterator[None]:
        """Hold exclusive dispatch rights for ``printer_name``.

        Raises:
            PrinterBusyError: If the printer or the spooler stayed busy past the timeout
        """
        timeout = self.timeout_seconds if timeout is None else timeout
        with self._condition:
            acquired = self._condition.wait_for(
                lambda: not self._resetting and printer_name not in self._busy,
                timeout=timeout
            )
            if not acquired:
                logger.warning("Printer lock timed out", printer=printer_name, timeout=timeout)
                raise PrinterBusyError(f"printer '{printer_name}'", timeout)
            self._busy.add(printer_name)
        try:
            yield
        finally:
            with self._condition:
                self._busy.discard(printer_name)
                self._condition.notify_all()

    @contextmanager
    def spooler(self, timeout: Optional[float] = None) -> Iterator[None]:
        """Hold the spooler exclusively: no dispatch runs while inside.

        Raises:
            PrinterBusyError: If another reset or in-flight dispatches outlasted the timeout
        """
        timeout = self.timeout_seconds if timeout is None else timeout
        with self._condition:
            if not self._condition.wait_for(lambda: not self._resetting, timeout=timeout):
                raise PrinterBusyError("print spooler", timeout)
            # Claim first so no new dispatch starts while in-flight ones drain
            self._resetting = True
            if not self._condition.wait_for(lambda: not self._busy, timeout=timeout):
                self._resetting = False
                self._condition.notify_all()
                logger.warning("Spooler lock timed out waiting for dispatches",
                               busy=sorted(self._busy), timeout=timeout)
                raise PrinterBusyError("in-flight print jobs", timeout)
        try:
            yield
        finally:
            with self._condition:
                self._resetting = False
                self._condition.notify_all()
