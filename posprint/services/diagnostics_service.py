"""
Printer diagnostics service.

Answers "does this printer exist and can it take a job right now?" from a
fresh enumeration and status query. Diagnostics never raise: every failure is
folded into the returned ``DiagnosticsResult``.
"""

from typing import Dict, List, Optional
import structlog

from posprint.models import (
    DiagnosticsResult,
    Printer,
    PrinterStatusCode,
    StatusInterpretation,
)
from .printer_query import PrinterQuery

logger = structlog.get_logger()

STATUS_LABELS: Dict[int, str] = {
    PrinterStatusCode.READY: "Ready",
    PrinterStatusCode.PAUSED: "Paused",
    PrinterStatusCode.ERROR: "Error",
    PrinterStatusCode.PENDING_DELETION: "Pending Deletion",
    PrinterStatusCode.PAPER_JAM: "Paper Jam",
    PrinterStatusCode.PAPER_OUT: "Paper Out",
    PrinterStatusCode.MANUAL_FEED: "Manual Feed",
    PrinterStatusCode.PAPER_PROBLEM: "Paper Problem",
    PrinterStatusCode.OFFLINE: "Offline",
}

NOT_FOUND = "Not Found"
STATUS_CHECK_FAILED = "Status Check Failed"
DIAGNOSTICS_FAILED = "Diagnostics Failed"
UNKNOWN = "Unknown"
WORK_OFFLINE_SUFFIX = " (Work Offline)"

# Troubleshooting steps, in the order they are presented
STEP_RESTART_SPOOLER = 'Open Services (services.msc) and restart the "Print Spooler" service'
STEP_SPOOLER_AUTOMATIC = 'Set the Print Spooler startup type to "Automatic"'
STEP_REINSTALL_DRIVER = "Reinstall the printer driver, running the installer as Administrator"
STEP_RECONNECT_USB = "Disconnect and reconnect the USB cable while the driver installs"
STEP_CHECK_CONNECTION = "Check the physical printer connections (USB/Network/Power)"
STEP_CHECK_POWER_PAPER = "Verify the printer is powered on and has paper loaded"
STEP_OTHER_PORT = "Try a different USB port or cable"
STEP_DISABLE_OFFLINE = 'Clear "Use Printer Offline" in the printer\'s queue window'
STEP_RESUME_QUEUE = "Resume the printer from its queue window"
STEP_CLEAR_PAPER = "Clear any paper jam, reload paper and close the printer cover"
STEP_MANUAL_FEED = "Insert paper in the manual feed slot or switch the tray to automatic"
STEP_CANCEL_JOBS = "Cancel all documents in the printer's queue window"


def interpret_status_code(
    code: Optional[int],
    pending_deletion_accessible: bool = True
) -> StatusInterpretation:
    """
    Map a Win32 printer status code to a label and access flags.

    Args:
        code: Raw status code, or None when the status query did not report one
        pending_deletion_accessible: Whether status 3 still accepts jobs

    Returns:
        StatusInterpretation with label, accessibility and online flag

    Examples:
        >>> interpret_status_code(8).is_online
        False
        >>> interpret_status_code(42).label
        'Status Code: 42'
    """
    if code is None:
        # No code reported; assume the printer can be tried
        return StatusInterpretation(code=None, label=UNKNOWN, is_accessible=True)

    label = STATUS_LABELS.get(code)
    if label is None:
        return StatusInterpretation(code=code, label=f"Status Code: {code}", is_accessible=code == 0)

    if code == PrinterStatusCode.PENDING_DELETION:
        accessible = pending_deletion_accessible
    else:
        accessible = code in (PrinterStatusCode.READY, PrinterStatusCode.MANUAL_FEED)

    return StatusInterpretation(
        code=code,
        label=label,
        is_accessible=accessible,
        is_online=code != PrinterStatusCode.OFFLINE
    )


def troubleshooting_steps(result: DiagnosticsResult) -> List[str]:
    """
    Ordered remediation steps for a diagnostics result.

    Accessible printers get an empty list.
    """
    if result.is_accessible:
        return []

    steps: List[str] = []

    def add(*items: str) -> None:
        for item in items:
            if item not in steps:
                steps.append(item)

    status = result.status
    code = result.status_code

    if status in (DIAGNOSTICS_FAILED, STATUS_CHECK_FAILED):
        add(STEP_RESTART_SPOOLER, STEP_SPOOLER_AUTOMATIC)
    elif not result.printer_exists:
        add(STEP_RESTART_SPOOLER, STEP_REINSTALL_DRIVER, STEP_RECONNECT_USB)
    else:
        if status.endswith(WORK_OFFLINE_SUFFIX):
            add(STEP_DISABLE_OFFLINE)
        if code == PrinterStatusCode.PAUSED:
            add(STEP_RESUME_QUEUE)
        elif code == PrinterStatusCode.PENDING_DELETION:
            add(STEP_CANCEL_JOBS, STEP_RESTART_SPOOLER)
        elif code in (PrinterStatusCode.PAPER_JAM, PrinterStatusCode.PAPER_OUT, PrinterStatusCode.PAPER_PROBLEM):
            add(STEP_CLEAR_PAPER)
        elif code == PrinterStatusCode.MANUAL_FEED:
            add(STEP_MANUAL_FEED)
        elif code == PrinterStatusCode.ERROR:
            add(STEP_RESTART_SPOOLER, STEP_CHECK_CONNECTION)

    if not result.is_online:
        add(STEP_CHECK_CONNECTION, STEP_CHECK_POWER_PAPER, STEP_OTHER_PORT)

    if not steps:
        add(STEP_RESTART_SPOOLER, STEP_CHECK_CONNECTION)

    return steps


class DiagnosticsService:
    """Existence, status and accessibility checks for a named printer."""

    def __init__(self, query: PrinterQuery, pending_deletion_accessible: bool = True):
        """
        Args:
            query: OS printer query implementation
            pending_deletion_accessible: Policy for status 3 (Pending Deletion)
        """
        self.query = query
        self.pending_deletion_accessible = pending_deletion_accessible

    def list_printers(self) -> List[Printer]:
        """Fresh enumeration with derived flags filled in.

        Raises:
            PosPrintError: If the enumeration failed
        """
        printers = self.query.list_printers()
        for printer in printers:
            interpretation = interpret_status_code(printer.status_code, self.pending_deletion_accessible)
            printer.is_online = interpretation.is_online and not printer.work_offline
            printer.is_accessible = interpretation.is_accessible and printer.is_online
        return printers

    def diagnose(self, printer_name: str) -> DiagnosticsResult:
        """
        Diagnose one printer.

        Args:
            printer_name: Exact display name

        Returns:
            DiagnosticsResult; never raises
        """
        log = logger.bind(printer=printer_name)

        try:
            printers = self.query.list_printers()
        except Exception as e:
            log.error("Printer enumeration failed", error=str(e), error_type=type(e).__name__)
            return self._finish(DiagnosticsResult(
                printer_name=printer_name,
                status=DIAGNOSTICS_FAILED,
                error_detail=f"Diagnostics failed: {e}"
            ))

        available = [p.name for p in printers]
        if printer_name not in available:
            log.warning("Printer not found", available_count=len(available))
            return self._finish(DiagnosticsResult(
                printer_name=printer_name,
                status=NOT_FOUND,
                available_printers=available,
                error_detail=f"Printer '{printer_name}' not found in system"
            ))

        try:
            extended = self.query.get_extended_status(printer_name)
        except Exception as e:
            log.warning("Printer status query failed", error=str(e))
            return self._finish(DiagnosticsResult(
                printer_name=printer_name,
                printer_exists=True,
                status=STATUS_CHECK_FAILED,
                available_printers=available,
                error_detail=f"Failed to check printer status: {e}"
            ))

        interpretation = interpret_status_code(extended.status_code, self.pending_deletion_accessible)
        status = interpretation.label
        is_online = interpretation.is_online
        is_accessible = interpretation.is_accessible

        if extended.work_offline:
            is_online = False
            is_accessible = False
            status += WORK_OFFLINE_SUFFIX

        is_accessible = is_accessible and is_online

        result = DiagnosticsResult(
            printer_name=printer_name,
            printer_exists=True,
            is_accessible=is_accessible,
            status=status,
            is_online=is_online,
            status_code=extended.status_code,
            available_printers=available,
            error_detail=None if is_accessible else status
        )
        log.info(
            "Printer diagnosed",
            status=status,
            status_code=extended.status_code,
            is_accessible=is_accessible,
            is_online=is_online
        )
        return self._finish(result)

    @staticmethod
    def _finish(result: DiagnosticsResult) -> DiagnosticsResult:
        result.troubleshooting_steps = troubleshooting_steps(result)
        return result
