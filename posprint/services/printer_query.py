"""
Printer query service.

The OS-facing half of diagnostics: enumerating installed printers and reading
one printer's extended status. ``PrinterQuery`` is the interface every
consumer depends on; ``WindowsPrinterQuery`` implements it with WMI queries
run through PowerShell.
"""

import json
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional
import structlog

from posprint.config.constants import TransportTimeouts
from posprint.models import ExtendedStatus, Printer
from posprint.utils.errors import DiagnosticsError
from posprint.utils.powershell import CommandResult, PowerShellRunner, PowerShellScript, wql_name_filter
from posprint.utils.retry import RetryConfig, execute_with_retry

logger = structlog.get_logger()


class PrinterQuery(ABC):
    """Read-only view of the printers registered with the OS."""

    @abstractmethod
    def list_printers(self) -> List[Printer]:
        """Enumerate installed printers.

        Raises:
            PosPrintError: If the enumeration could not be performed
        """
        pass

    @abstractmethod
    def get_extended_status(self, printer_name: str) -> ExtendedStatus:
        """Read status code and work-offline flag for one printer.

        Raises:
            PosPrintError: If the status could not be read
        """
        pass

    def get_printer(self, printer_name: str) -> Optional[Printer]:
        """Find a printer by exact display name."""
        for printer in self.list_printers():
            if printer.name == printer_name:
                return printer
        return None


def _parse_json(result: CommandResult, operation: str) -> Any:
    if not result.ok:
        raise DiagnosticsError(operation, result.failure_detail(), {"returncode": result.returncode})

    text = result.stdout.strip()
    if not text:
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise DiagnosticsError(operation, f"invalid JSON output: {e}")


def _optional_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _printer_from_record(record: Dict[str, Any]) -> Printer:
    return Printer(
        name=record.get("Name") or "",
        driver_name=record.get("DriverName"),
        port_name=record.get("PortName"),
        status_code=_optional_int(record.get("PrinterState")),
        work_offline=bool(record.get("WorkOffline")),
    )


class WindowsPrinterQuery(PrinterQuery):
    """``PrinterQuery`` backed by ``Win32_Printer``."""

    def __init__(
        self,
        runner: PowerShellRunner,
        enumeration_timeout: float = TransportTimeouts.ENUMERATION,
        status_query_timeout: float = TransportTimeouts.STATUS_QUERY,
        retry_config: Optional[RetryConfig] = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        """
        Args:
            runner: PowerShell runner
            enumeration_timeout: Deadline for listing all printers
            status_query_timeout: Deadline for one printer's status
            retry_config: Retry policy for enumeration (detection policy if None)
            sleep: Sleep function used between retries
        """
        self.runner = runner
        self.enumeration_timeout = enumeration_timeout
        self.status_query_timeout = status_query_timeout
        self.retry_config = retry_config or RetryConfig.for_detection()
        self._sleep = sleep

    def enumeration_script(self) -> PowerShellScript:
        return PowerShellScript("list-printers", error_label="Enumeration").add(
            "$printers = @(Get-WmiObject -Class Win32_Printer -ErrorAction Stop |",
            "    Select-Object Name, DriverName, PortName, PrinterState, WorkOffline)",
            "ConvertTo-Json -InputObject $printers -Compress -Depth 2",
        )

    def status_script(self, printer_name: str) -> PowerShellScript:
        return (
            PowerShellScript("printer-status", error_label="Status")
            .assign("filter", wql_name_filter(printer_name))
            .add(
                "$printer = Get-WmiObject -Class Win32_Printer -Filter $filter -ErrorAction Stop",
                "if (-not $printer) {",
                "    Write-Output 'null'",
                "    exit 0",
                "}",
                "[pscustomobject]@{",
                "    Name = $printer.Name",
                "    DriverName = $printer.DriverName",
                "    PortName = $printer.PortName",
                "    PrinterState = $printer.PrinterState",
                "    WorkOffline = [bool]$printer.WorkOffline",
                "} | ConvertTo-Json -Compress",
            )
        )

    def _enumerate_once(self) -> List[Printer]:
        result = self.runner.run(self.enumeration_script(), timeout=self.enumeration_timeout)
        data = _parse_json(result, "printer enumeration")
        if data is None:
            return []
        if isinstance(data, dict):
            data = [data]
        if not isinstance(data, list):
            raise DiagnosticsError("printer enumeration", f"unexpected output type {type(data).__name__}")
        return [_printer_from_record(record) for record in data if record.get("Name")]

    def list_printers(self) -> List[Printer]:
        result = execute_with_retry(
            self._enumerate_once,
            config=self.retry_config,
            operation_name="printer enumeration",
            sleep=self._sleep
        )
        if not result.success:
            raise result.final_error

        printers = result.data
        logger.debug("Enumerated printers", count=len(printers), attempts=result.total_attempts)
        return printers

    def get_extended_status(self, printer_name: str) -> ExtendedStatus:
        result = self.runner.run(self.status_script(printer_name), timeout=self.status_query_timeout)
        data = _parse_json(result, "printer status query")
        if not isinstance(data, dict):
            raise DiagnosticsError("printer status query", f"printer '{printer_name}' returned no status")

        return ExtendedStatus(
            printer_name=printer_name,
            status_code=_optional_int(data.get("PrinterState")),
            work_offline=bool(data.get("WorkOffline")),
            driver_name=data.get("DriverName"),
            port_name=data.get("PortName"),
        )
