"""
Composite "PowerShell Raw" transport.

Runs a fixed chain of transports as a single attempt and stops at the first
one that delivers. Bypass ordering uses it to give the conservative chain one
more pass after the direct paths have failed.
"""

from typing import List, Sequence
import structlog

from posprint.config.constants import MethodNames
from .base import Transport, TransportOutcome

logger = structlog.get_logger()


class RawScriptTransport(Transport):
    """Try each inner transport in order as one attempt."""

    def __init__(self, transports: Sequence[Transport]):
        if not transports:
            raise ValueError("RawScriptTransport needs at least one inner transport")
        self.transports: List[Transport] = list(transports)
        self.logger = logger.bind(strategy=self.__class__.__name__)

    @property
    def name(self) -> str:
        return MethodNames.RAW_SCRIPT

    def attempt(self, printer_name: str, payload: bytes) -> TransportOutcome:
        failures = []
        for transport in self.transports:
            try:
                outcome = transport.attempt(printer_name, payload)
            except Exception as e:
                outcome = TransportOutcome(False, f"{type(e).__name__}: {e}")

            if outcome:
                self.logger.debug("Inner transport delivered", printer=printer_name, inner=transport.name)
                return TransportOutcome(True, f"via {transport.name}")
            failures.append(f"{transport.name}: {outcome.detail}")

        return TransportOutcome(False, "; ".join(failures))
