"""
Management-object transport ("WMI").

Resolves the printer through ``Win32_Printer`` and pipes the payload text
into ``Out-Printer``.
"""

from posprint.config.constants import MethodNames, Sentinels
from posprint.utils.powershell import PowerShellScript, wql_name_filter
from .base import TransportStrategy


class ManagementObjectTransport(TransportStrategy):
    """Print through WMI printer lookup and ``Out-Printer``."""

    sentinel = Sentinels.MANAGEMENT_OBJECT
    file_prefix = "wmi-print"

    @property
    def name(self) -> str:
        return MethodNames.MANAGEMENT_OBJECT

    def build_script(self, printer_name: str, payload_path: str) -> PowerShellScript:
        return (
            PowerShellScript("wmi-print", error_label="WMI")
            .assign("printerName", printer_name)
            .assign("filter", wql_name_filter(printer_name))
            .assign("source", payload_path)
            .add(
                "$printer = Get-WmiObject -Class Win32_Printer -Filter $filter -ErrorAction Stop",
                "if (-not $printer) {",
                "    Write-Output 'WMI Error: Printer not found'",
                "    exit 1",
                "}",
                "Get-Content -LiteralPath $source -Raw -ErrorAction Stop | Out-Printer -Name $printerName -ErrorAction Stop",
                f"Write-Output '{self.sentinel}'",
            )
        )
