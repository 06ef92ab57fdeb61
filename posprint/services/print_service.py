"""
Print service.

The caller-facing flow on top of diagnostics, dispatch and spooler recovery:

1. Diagnose the printer. Missing printers and inaccessible printers are
   rejected before anything is sent, except printers stuck in
   "Pending Deletion", which are tried anyway.
2. Dispatch with the requested ordering.
3. If that fails while the printer is pending deletion, try bypass ordering,
   then reset the spooler and retry with the conservative order.
"""

import time
from typing import Callable, Optional, Union
import structlog

from posprint.config.constants import SpoolerTimings
from posprint.models import (
    DiagnosticsResult,
    DispatchMode,
    DispatchResult,
    PrintOptions,
    PrintPath,
    PrintRequest,
)
from posprint.transports import build_transports
from posprint.utils.config import PosPrintSettings, get_settings
from posprint.utils.errors import PrinterNotFoundError, PrinterUnavailableError
from posprint.utils.logging_config import setup_logging
from posprint.utils.powershell import PowerShellRunner
from . import driver_classifier
from .diagnostics_service import DiagnosticsService
from .locks import PrinterLockRegistry
from .print_dispatcher import PrintDispatcher
from .printer_query import PrinterQuery, WindowsPrinterQuery
from .spooler_service import SpoolerService

logger = structlog.get_logger()


class PrintService:
    """Diagnose, dispatch and recover for a single print request."""

    def __init__(
        self,
        diagnostics: DiagnosticsService,
        dispatcher: PrintDispatcher,
        spooler: SpoolerService,
        query: PrinterQuery,
        post_reset_wait: float = SpoolerTimings.POST_RESET_RETRY_WAIT,
        sleep: Callable[[float], None] = time.sleep
    ):
        self.diagnostics = diagnostics
        self.dispatcher = dispatcher
        self.spooler = spooler
        self.query = query
        self.post_reset_wait = post_reset_wait
        self._sleep = sleep

    @classmethod
    def from_settings(
        cls,
        settings: Optional[PosPrintSettings] = None,
        configure_logging: bool = True
    ) -> "PrintService":
        """
        Wire the full engine from settings.

        Args:
            settings: Settings to use (defaults to ``get_settings()``)
            configure_logging: Apply the log level and log file from settings

        Returns:
            PrintService sharing one runner, query and lock registry
        """
        settings = settings or get_settings()
        if configure_logging:
            setup_logging(settings.log_level, settings.log_file)

        runner = PowerShellRunner(settings.powershell_executable, settings.temp_dir)
        locks = PrinterLockRegistry(settings.lock_timeout_seconds)
        query = WindowsPrinterQuery(
            runner,
            enumeration_timeout=settings.enumeration_timeout,
            status_query_timeout=settings.status_query_timeout
        )
        spooler = SpoolerService(
            runner,
            locks=locks,
            reset_timeout=settings.spooler_reset_timeout,
            settle_seconds=settings.spooler_settle_seconds,
            stabilize_seconds=settings.spooler_stabilize_seconds,
            spool_directory=settings.spool_directory
        )
        return cls(
            diagnostics=DiagnosticsService(query, settings.pending_deletion_accessible),
            dispatcher=PrintDispatcher(build_transports(runner, settings), locks=locks, query=query),
            spooler=spooler,
            query=query
        )

    def preflight(self, printer_name: str) -> DiagnosticsResult:
        """
        Diagnose ``printer_name`` and reject it if it cannot take a job.

        Raises:
            PrinterNotFoundError: If the printer is not installed
            PrinterUnavailableError: If it exists but is not accessible
        """
        diagnostics = self.diagnostics.diagnose(printer_name)

        if not diagnostics.printer_exists:
            details = {"troubleshooting_steps": diagnostics.troubleshooting_steps}
            if diagnostics.error_detail:
                details["error_detail"] = diagnostics.error_detail
            raise PrinterNotFoundError(printer_name, diagnostics.available_printers, details)

        if not diagnostics.is_accessible and not diagnostics.is_pending_deletion:
            raise PrinterUnavailableError(
                printer_name,
                diagnostics.status,
                diagnostics.troubleshooting_steps,
                {"is_online": diagnostics.is_online, "status_code": diagnostics.status_code}
            )

        return diagnostics

    def print_payload(
        self,
        printer_name: str,
        payload: Union[bytes, str],
        options: Optional[PrintOptions] = None
    ) -> DispatchResult:
        """
        Print ``payload`` on ``printer_name`` with escalation on failure.

        Args:
            printer_name: Exact printer display name
            payload: Raw bytes, or text sent as UTF-8
            options: Print options (defaults to conservative, one copy)

        Returns:
            DispatchResult of the last dispatch performed

        Raises:
            PrinterNotFoundError: If the printer is not installed
            PrinterUnavailableError: If the printer exists but is not accessible
            PrinterBusyError: If the printer or spooler stayed locked too long
        """
        request = PrintRequest(
            target_printer_name=printer_name,
            payload=payload,
            options=options or PrintOptions()
        )
        return self.print_request(request)

    def print_request(self, request: PrintRequest) -> DispatchResult:
        """``print_payload`` for a prepared ``PrintRequest``."""
        printer_name = request.target_printer_name
        log = logger.bind(printer=printer_name)

        diagnostics = self.preflight(printer_name)
        pending_deletion = diagnostics.is_pending_deletion
        payload = request.rendered_payload()

        mode = request.options.mode
        if pending_deletion:
            log.warning("Printer pending deletion, attempting to print anyway", status=diagnostics.status)

        result = self.dispatcher.dispatch(printer_name, payload, mode=mode)
        if result.success or not pending_deletion:
            return result

        if mode != DispatchMode.BYPASS:
            log.warning("Dispatch failed for pending-deletion printer, trying bypass ordering")
            bypass = self.dispatcher.dispatch(printer_name, payload, mode=DispatchMode.BYPASS)
            bypass.attempts = result.attempts + bypass.attempts
            result = bypass
            if result.success:
                result.details = f"{result.details} despite pending deletion status"
                return result

        log.warning("Bypass dispatch failed for pending-deletion printer, resetting spooler")
        if not self.spooler.reset_spooler():
            log.error("Spooler reset failed, giving up")
            return result

        self._sleep(self.post_reset_wait)
        retry = self.dispatcher.dispatch(printer_name, payload, mode=DispatchMode.CONSERVATIVE)
        retry.attempts = result.attempts + retry.attempts
        if retry.success:
            retry.details = f"{retry.details} after spooler reset"
        return retry

    def recommend_print_path(self, printer_name: str) -> PrintPath:
        """
        Whether a silent-printing library can drive this printer or raw
        transports are required.

        Lookup failures fall back to ``RAW_TRANSPORT``.
        """
        try:
            printer = self.query.get_printer(printer_name)
        except Exception as e:
            logger.warning("Printer lookup failed, recommending raw transport",
                           printer=printer_name, error=str(e))
            return PrintPath.RAW_TRANSPORT

        if printer is None:
            return PrintPath.RAW_TRANSPORT

        classification = driver_classifier.classify(printer.driver_name, printer.port_name)
        path = PrintPath.SILENT_LIBRARY if classification.silent_capable else PrintPath.RAW_TRANSPORT
        logger.info(
            "Print path recommended",
            printer=printer_name,
            driver_type=classification.driver_type.value,
            path=path.value
        )
        return path
