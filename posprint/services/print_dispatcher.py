"""
Print dispatcher.

Runs transport strategies one after another until one delivers. Every attempt
runs inside its own fault boundary, so exceptions, timeouts and false results
all become failed ``StrategyAttempt`` records. There is no retry inside a
dispatch; a failing strategy is simply followed by the next one.
"""

from typing import Callable, Dict, List, Mapping, Optional, Sequence
import structlog

from posprint.config.constants import MethodNames
from posprint.models import (
    DispatchMode,
    DispatchResult,
    DriverClassification,
    PrintRequest,
    RecommendedMethod,
    StrategyAttempt,
)
from posprint.transports import Transport
from posprint.utils.errors import ConfigurationError
from posprint.utils.logging_config import preview_payload
from posprint.utils.timing import Stopwatch
from . import driver_classifier
from .locks import PrinterLockRegistry
from .printer_query import PrinterQuery

logger = structlog.get_logger()

CONSERVATIVE_ORDER: List[str] = [
    MethodNames.MANAGEMENT_OBJECT,
    MethodNames.PRINT_QUEUE,
    MethodNames.PORT_COPY,
    MethodNames.LEGACY_COMMAND,
]

BYPASS_ORDER: List[str] = [
    MethodNames.PORT_COPY,
    MethodNames.LEGACY_COMMAND,
    MethodNames.RAW_SCRIPT,
    MethodNames.PRINT_QUEUE,
    MethodNames.MANAGEMENT_OBJECT,
]

HYBRID_ORDER: List[str] = [
    MethodNames.PORT_COPY,
    MethodNames.LEGACY_COMMAND,
    MethodNames.MANAGEMENT_OBJECT,
    MethodNames.PRINT_QUEUE,
]


def order_for(mode: DispatchMode, classification: Optional[DriverClassification] = None) -> List[str]:
    """
    Strategy order for a dispatch mode.

    Args:
        mode: Dispatch mode
        classification: Driver classification, consulted only for ``AUTO``

    Returns:
        Method names in the order they will be attempted

    Examples:
        >>> order_for(DispatchMode.CONSERVATIVE)
        ['WMI', 'NET PRINT', 'COPY', 'PRINT']
    """
    if mode == DispatchMode.CONSERVATIVE:
        return list(CONSERVATIVE_ORDER)
    if mode == DispatchMode.BYPASS:
        return list(BYPASS_ORDER)

    if classification is None:
        return list(CONSERVATIVE_ORDER)
    if classification.recommended_method == RecommendedMethod.DIRECT_USB:
        return list(BYPASS_ORDER)
    if classification.recommended_method == RecommendedMethod.HYBRID:
        return list(HYBRID_ORDER)
    return list(CONSERVATIVE_ORDER)


class PrintDispatcher:
    """Ordered, sequential transport execution for one printer at a time."""

    def __init__(
        self,
        transports: Mapping[str, Transport],
        locks: Optional[PrinterLockRegistry] = None,
        query: Optional[PrinterQuery] = None,
        classifier: Callable[..., DriverClassification] = driver_classifier.classify
    ):
        """Initialize print dispatcher.

        Args:
            transports: Transports keyed by method name
            locks: Lock registry shared with the spooler service
            query: Printer query used by ``AUTO`` mode to look up driver and port
            classifier: Driver classifier function
        """
        self.transports: Dict[str, Transport] = dict(transports)
        self.locks = locks or PrinterLockRegistry()
        self.query = query
        self.classifier = classifier

    def resolve_order(self, printer_name: str, mode: DispatchMode) -> List[str]:
        """Strategy names for ``mode``; ``AUTO`` classifies the printer's driver."""
        if mode != DispatchMode.AUTO:
            return order_for(mode)

        if self.query is None:
            logger.debug("No printer query for auto mode, using conservative order", printer=printer_name)
            return order_for(mode)

        try:
            printer = self.query.get_printer(printer_name)
        except Exception as e:
            logger.warning("Driver lookup failed, using conservative order", printer=printer_name, error=str(e))
            return order_for(mode)

        if printer is None:
            return order_for(mode)

        classification = self.classifier(printer.driver_name, printer.port_name)
        logger.info(
            "Driver classified",
            printer=printer_name,
            driver=printer.driver_name,
            port=printer.port_name,
            recommended_method=classification.recommended_method.value
        )
        return order_for(mode, classification)

    def strategies_for(self, names: Sequence[str]) -> List[Transport]:
        missing = [name for name in names if name not in self.transports]
        if missing:
            raise ConfigurationError("transports", f"no transport registered for {', '.join(missing)}")
        return [self.transports[name] for name in names]

    def dispatch(
        self,
        printer_name: str,
        payload: bytes,
        mode: DispatchMode = DispatchMode.CONSERVATIVE,
        strategies: Optional[Sequence[Transport]] = None
    ) -> DispatchResult:
        """
        Deliver ``payload`` with the first strategy that succeeds.

        Args:
            printer_name: Exact printer display name
            payload: Raw bytes
            mode: Ordering policy (ignored when ``strategies`` is given)
            strategies: Explicit strategy list overriding the mode's order

        Returns:
            DispatchResult; dispatch failure is returned, never raised

        Raises:
            PrinterBusyError: If the printer lock could not be acquired
        """
        log = logger.bind(printer=printer_name, mode=mode.value)

        with self.locks.printer(printer_name):
            if strategies is None:
                strategies = self.strategies_for(self.resolve_order(printer_name, mode))

            log.info(
                "Dispatching print job",
                payload_bytes=len(payload),
                payload_preview=preview_payload(payload),
                order=[s.name for s in strategies]
            )

            attempts: List[StrategyAttempt] = []
            for strategy in strategies:
                watch = Stopwatch()
                try:
                    outcome = strategy.attempt(printer_name, payload)
                    success = bool(outcome)
                    detail = None if success else (getattr(outcome, "detail", "") or "returned false")
                except Exception as e:
                    success = False
                    detail = f"{type(e).__name__}: {e}"
                watch.stop()

                attempts.append(StrategyAttempt(
                    method_name=strategy.name,
                    success=success,
                    error_detail=detail,
                    started_at=watch.started_at,
                    elapsed_ms=watch.elapsed_ms
                ))

                if success:
                    log.info("Print job delivered", method=strategy.name,
                             attempt=len(attempts), elapsed_ms=watch.elapsed_ms)
                    return DispatchResult(
                        success=True,
                        method_used=strategy.name,
                        details=f"Printed using {strategy.name}",
                        attempts=attempts,
                        printer_name=printer_name,
                        mode=mode
                    )

                log.warning("Print method failed", method=strategy.name, error=detail,
                            elapsed_ms=watch.elapsed_ms)

        failed = ", ".join(a.method_name for a in attempts)
        log.error("All print methods failed", methods=failed)
        return DispatchResult(
            success=False,
            method_used=MethodNames.ALL_FAILED,
            details=f"All print methods failed ({failed})" if attempts else "No print methods configured",
            attempts=attempts,
            printer_name=printer_name,
            mode=mode
        )

    def dispatch_request(self, request: PrintRequest) -> DispatchResult:
        """Dispatch a ``PrintRequest`` with its copies and plain-text options applied."""
        return self.dispatch(
            request.target_printer_name,
            request.rendered_payload(),
            mode=request.options.mode
        )
