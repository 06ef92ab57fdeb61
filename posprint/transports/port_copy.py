"""
Port copy transport ("COPY").

Binary-copies the payload straight to the printer's port (``USB001``,
``LPT1``, ...) with ``copy /b``. When no port can be resolved the local
share path ``\\\\<host>\\<printer>`` is used instead.
"""

import socket
from typing import Optional

from posprint.config.constants import MethodNames, Sentinels
from posprint.utils.powershell import PowerShellScript, wql_name_filter
from .base import TransportStrategy


def share_path(printer_name: str, hostname: Optional[str] = None) -> str:
    """UNC path of a printer shared from this machine."""
    host = hostname or socket.gethostname()
    return f"\\\\{host}\\{printer_name}"


class PortCopyTransport(TransportStrategy):
    """Binary copy to the printer port, bypassing the driver."""

    sentinel = Sentinels.PORT_COPY
    file_prefix = "copy-print"

    @property
    def name(self) -> str:
        return MethodNames.PORT_COPY

    def build_script(self, printer_name: str, payload_path: str) -> PowerShellScript:
        return (
            PowerShellScript("copy-print", error_label="COPY")
            .assign("filter", wql_name_filter(printer_name))
            .assign("source", payload_path)
            .assign("shareTarget", share_path(printer_name))
            .add(
                "$printer = Get-WmiObject -Class Win32_Printer -Filter $filter -ErrorAction SilentlyContinue",
                "if ($printer -and $printer.PortName) {",
                "    $target = $printer.PortName",
                "} else {",
                "    $target = $shareTarget",
                "}",
                "$output = cmd.exe /c ('copy /b \"' + $source + '\" \"' + $target + '\"') 2>&1",
                "if ($LASTEXITCODE -eq 0) {",
                f"    Write-Output '{self.sentinel}'",
                "} else {",
                "    Write-Output ('COPY Error: ' + ($output | Out-String).Trim())",
                "    exit 1",
                "}",
            )
        )
