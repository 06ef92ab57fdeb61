"""
Managed print queue transport ("NET PRINT").

Opens the printer's ``System.Printing.PrintQueue`` on the local print server,
adds a named job and writes the raw payload bytes into its job stream.
"""

from posprint.config.constants import MethodNames, Sentinels
from posprint.utils.powershell import PowerShellScript
from .base import TransportStrategy


class PrintQueueTransport(TransportStrategy):
    """Write raw bytes into a ``System.Printing`` job stream."""

    sentinel = Sentinels.PRINT_QUEUE
    file_prefix = "net-print"

    @property
    def name(self) -> str:
        return MethodNames.PRINT_QUEUE

    def build_script(self, printer_name: str, payload_path: str) -> PowerShellScript:
        return (
            PowerShellScript("net-print", error_label="NET")
            .assign("printerName", printer_name)
            .assign("source", payload_path)
            .assign("jobName", self.job_name)
            .add(
                "Add-Type -AssemblyName System.Printing",
                "$bytes = [System.IO.File]::ReadAllBytes($source)",
                "$server = $null",
                "$queue = $null",
                "$stream = $null",
                "try {",
                "    $server = New-Object System.Printing.PrintServer",
                "    $queue = New-Object System.Printing.PrintQueue($server, $printerName)",
                "    $job = $queue.AddJob($jobName)",
                "    $stream = $job.JobStream",
                "    $stream.Write($bytes, 0, $bytes.Length)",
                "} finally {",
                "    if ($stream) { $stream.Close() }",
                "    if ($queue) { $queue.Dispose() }",
                "    if ($server) { $server.Dispose() }",
                "}",
                f"Write-Output '{self.sentinel}'",
            )
        )
