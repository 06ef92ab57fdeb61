"""
Test doubles shared by the posprint test suite.

Nothing here touches Windows: PowerShell is replaced by ``FakeRunner`` and
the OS printer list by ``FakePrinterQuery``.
"""

from typing import Callable, Dict, List, Optional, Union

from posprint.models import ExtendedStatus, Printer
from posprint.services.printer_query import PrinterQuery
from posprint.transports.base import Transport, TransportOutcome
from posprint.utils.powershell import CommandResult, PowerShellRunner, PowerShellScript


# ---------------------------------------------------------------------------
# PowerShell
# ---------------------------------------------------------------------------

Response = Union[CommandResult, Exception, Callable[[PowerShellScript], CommandResult]]


def ok(*lines: str) -> CommandResult:
    return CommandResult(returncode=0, stdout="\n".join(lines) + "\n")


def failed(*lines: str, returncode: int = 1) -> CommandResult:
    return CommandResult(returncode=returncode, stdout="\n".join(lines) + "\n")


class FakeRunner(PowerShellRunner):
    """Records scripts and answers with queued responses, keyed by script name."""

    def __init__(self, default: Optional[CommandResult] = None):
        super().__init__(executable="powershell.exe")
        self.calls: List[tuple] = []
        self.responses: Dict[str, List[Response]] = {}
        self.default = default or CommandResult(returncode=0, stdout="")

    def respond(self, script_name: str, *responses: Response) -> "FakeRunner":
        self.responses.setdefault(script_name, []).extend(responses)
        return self

    def run(self, script: PowerShellScript, timeout: float) -> CommandResult:
        self.calls.append((script, timeout))
        queue = self.responses.get(script.name)
        response = queue.pop(0) if queue else self.default
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(script)
        return response

    @property
    def script_names(self) -> List[str]:
        return [script.name for script, _ in self.calls]


# ---------------------------------------------------------------------------
# Printers
# ---------------------------------------------------------------------------

class FakePrinterQuery(PrinterQuery):
    """In-memory printer list with per-printer status."""

    def __init__(self):
        self.printers: List[Printer] = []
        self.list_error: Optional[Exception] = None
        self.status_error: Optional[Exception] = None
        self.status_calls: List[str] = []

    def add(self, name: str, status_code: Optional[int] = 0, work_offline: bool = False,
            driver_name: str = "RONGTA 80mm Series Printer", port_name: str = "USB001") -> Printer:
        printer = Printer(
            name=name,
            driver_name=driver_name,
            port_name=port_name,
            status_code=status_code,
            work_offline=work_offline,
        )
        self.printers.append(printer)
        return printer

    def list_printers(self) -> List[Printer]:
        if self.list_error:
            raise self.list_error
        return [printer.model_copy() for printer in self.printers]

    def get_extended_status(self, printer_name: str) -> ExtendedStatus:
        self.status_calls.append(printer_name)
        if self.status_error:
            raise self.status_error
        for printer in self.printers:
            if printer.name == printer_name:
                return ExtendedStatus(
                    printer_name=printer_name,
                    status_code=printer.status_code,
                    work_offline=printer.work_offline,
                    driver_name=printer.driver_name,
                    port_name=printer.port_name,
                )
        raise LookupError(printer_name)


# ---------------------------------------------------------------------------
# Transports
# ---------------------------------------------------------------------------

class FakeTransport(Transport):
    """Transport returning scripted outcomes; the last outcome repeats."""

    def __init__(self, name: str, *outcomes):
        self._name = name
        self.outcomes = list(outcomes) or [TransportOutcome(False, f"{name} failed")]
        self.calls: List[tuple] = []

    @property
    def name(self) -> str:
        return self._name

    def attempt(self, printer_name: str, payload: bytes):
        self.calls.append((printer_name, payload))
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome
