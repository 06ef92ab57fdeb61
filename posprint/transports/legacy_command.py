"""
Legacy line-printer command transport ("PRINT").

Hands the payload file to ``print.exe /d:<printer>``.
"""

from posprint.config.constants import MethodNames, Sentinels
from posprint.utils.powershell import PowerShellScript
from .base import TransportStrategy


class LegacyCommandTransport(TransportStrategy):
    """Submit the payload file with ``print.exe``."""

    sentinel = Sentinels.LEGACY_COMMAND
    file_prefix = "print-cmd"

    @property
    def name(self) -> str:
        return MethodNames.LEGACY_COMMAND

    def build_script(self, printer_name: str, payload_path: str) -> PowerShellScript:
        return (
            PowerShellScript("print-cmd", error_label="PRINT")
            .assign("printerName", printer_name)
            .assign("source", payload_path)
            .add(
                "$output = cmd.exe /c ('print /d:\"' + $printerName + '\" \"' + $source + '\"') 2>&1",
                "if ($LASTEXITCODE -eq 0) {",
                f"    Write-Output '{self.sentinel}'",
                "} else {",
                "    Write-Output ('PRINT Error: ' + ($output | Out-String).Trim())",
                "    exit 1",
                "}",
            )
        )
