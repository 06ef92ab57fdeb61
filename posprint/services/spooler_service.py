"""
Print spooler recovery service.

Two-tier remediation for a wedged Windows print spooler:

1. Non-privileged: delete the queued jobs of printers stuck in
   "Pending Deletion" through ``Win32_PrintJob``.
2. Privileged, only when tier 1 failed: stop the ``Spooler`` service, empty
   the spool directory and start it again.

Also answers health and queue-length questions about the spooler.
"""

import json
import time
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional
import structlog

from posprint.config.constants import Sentinels, SpoolerTimings, TransportTimeouts
from posprint.models import SpoolerRecoveryResult, SpoolerState, SpoolerStatus
from posprint.utils.errors import PosPrintError, PrivilegeError, SpoolerError
from posprint.utils.powershell import PowerShellRunner, PowerShellScript
from posprint.utils.timing import timed_operation
from .locks import PrinterLockRegistry

logger = structlog.get_logger()

CLEARED_JOBS_PREFIX = "CLEARED_JOBS="


class SpoolerService:
    """Spooler health checks and recovery."""

    def __init__(
        self,
        runner: PowerShellRunner,
        locks: Optional[PrinterLockRegistry] = None,
        queue_clear_timeout: float = SpoolerTimings.QUEUE_CLEAR_TIMEOUT,
        reset_timeout: float = SpoolerTimings.RESET_TIMEOUT,
        service_query_timeout: float = TransportTimeouts.SERVICE_QUERY,
        settle_seconds: float = SpoolerTimings.QUEUE_SETTLE_WAIT,
        stabilize_seconds: float = SpoolerTimings.RESET_STABILIZE_WAIT,
        spool_directory: Optional[str] = None,
        service_name: str = SpoolerTimings.SERVICE_NAME,
        sleep: Callable[[float], None] = time.sleep
    ):
        """Initialize spooler service.

        Args:
            runner: PowerShell runner
            locks: Lock registry shared with the dispatcher
            queue_clear_timeout: Deadline for the tier 1 script
            reset_timeout: Deadline for the tier 2 script
            service_query_timeout: Deadline for status queries
            settle_seconds: Wait after a successful queue clear
            stabilize_seconds: Wait after the service restarts
            spool_directory: Override for %SystemRoot%\\System32\\spool\\PRINTERS
            service_name: Windows service name of the spooler
            sleep: Sleep function, injectable for tests
        """
        self.runner = runner
        self.locks = locks or PrinterLockRegistry()
        self.queue_clear_timeout = queue_clear_timeout
        self.reset_timeout = reset_timeout
        self.service_query_timeout = service_query_timeout
        self.settle_seconds = settle_seconds
        self.stabilize_seconds = stabilize_seconds
        self.spool_directory = spool_directory
        self.service_name = service_name
        self._sleep = sleep

        self.state = SpoolerState.HEALTHY
        self.last_reset: Optional[datetime] = None

    # ------------------------------------------------------------------
    # Scripts
    # ------------------------------------------------------------------

    def queue_clear_script(self) -> PowerShellScript:
        return PowerShellScript("clear-queue", error_label="Queue clear").add(
            "$cleared = 0",
            "$printers = Get-WmiObject -Class Win32_Printer -ErrorAction Stop",
            "foreach ($printer in $printers) {",
            "    if ($printer.PrinterState -eq 3) {",
            "        $prefix = $printer.Name + ','",
            "        Get-WmiObject -Class Win32_PrintJob -ErrorAction Stop |",
            "            Where-Object { $_.Name.StartsWith($prefix) } |",
            "            ForEach-Object { $_.Delete(); $cleared++ }",
            "    }",
            "}",
            f"Write-Output ('{CLEARED_JOBS_PREFIX}' + $cleared)",
            f"Write-Output '{Sentinels.QUEUE_CLEARED}'",
        )

    def reset_script(self) -> PowerShellScript:
        script = PowerShellScript("spooler-reset", error_label="Spooler reset")
        script.assign("serviceName", self.service_name)
        if self.spool_directory:
            script.assign("spoolPath", self.spool_directory)
        else:
            script.add("$spoolPath = Join-Path $env:SystemRoot 'System32\\spool\\PRINTERS'")

        return script.add(
            "$identity = [Security.Principal.WindowsIdentity]::GetCurrent()",
            "$principal = New-Object Security.Principal.WindowsPrincipal($identity)",
            "if (-not $principal.IsInRole([Security.Principal.WindowsBuiltInRole]::Administrator)) {",
            f"    Write-Output '{Sentinels.ADMIN_REQUIRED}'",
            "    exit 1",
            "}",
            "Stop-Service -Name $serviceName -Force -ErrorAction Stop",
            "Start-Sleep -Seconds 2",
            "if (Test-Path -LiteralPath $spoolPath) {",
            "    Get-ChildItem -LiteralPath $spoolPath -File | Remove-Item -Force -ErrorAction SilentlyContinue",
            "}",
            "Start-Service -Name $serviceName -ErrorAction Stop",
            f"Write-Output '{Sentinels.SPOOLER_RESET}'",
        )

    def service_status_script(self) -> PowerShellScript:
        return (
            PowerShellScript("spooler-status", error_label="Spooler status")
            .assign("serviceName", self.service_name)
            .add("(Get-Service -Name $serviceName -ErrorAction Stop).Status.ToString()")
        )

    def queue_length_script(self) -> PowerShellScript:
        return PowerShellScript("queue-length", error_label="Queue length").add(
            "@(Get-WmiObject -Class Win32_PrintJob -ErrorAction Stop).Count",
        )

    def stuck_jobs_script(self, min_age_minutes: int) -> PowerShellScript:
        return (
            PowerShellScript("stuck-jobs", error_label="Stuck jobs")
            .assign("minAge", str(min_age_minutes))
            .add(
                "$cutoff = (Get-Date).AddMinutes(-[int]$minAge)",
                "$jobs = @(Get-WmiObject -Class Win32_PrintJob -ErrorAction Stop | ForEach-Object {",
                "    $submitted = [Management.ManagementDateTimeConverter]::ToDateTime($_.TimeSubmitted)",
                "    if ($submitted -lt $cutoff) {",
                "        [pscustomobject]@{",
                "            Name = $_.Name",
                "            JobStatus = $_.JobStatus",
                "            AgeMinutes = [math]::Round(((Get-Date) - $submitted).TotalMinutes, 1)",
                "        }",
                "    }",
                "})",
                "ConvertTo-Json -InputObject $jobs -Compress",
            )
        )

    # ------------------------------------------------------------------
    # Recovery
    # ------------------------------------------------------------------

    def clear_stuck_queues(self) -> int:
        """
        Tier 1: delete jobs of printers stuck in "Pending Deletion".

        Returns:
            Number of jobs deleted

        Raises:
            SpoolerError: If the queues could not be cleared
        """
        result = self.runner.run(self.queue_clear_script(), timeout=self.queue_clear_timeout)
        if not result.contains(Sentinels.QUEUE_CLEARED):
            raise SpoolerError("queue clear", result.failure_detail())

        cleared = 0
        for line in result.stdout.splitlines():
            line = line.strip()
            if line.startswith(CLEARED_JOBS_PREFIX):
                try:
                    cleared = int(line[len(CLEARED_JOBS_PREFIX):])
                except ValueError:
                    pass
        return cleared

    def restart_spooler(self) -> None:
        """
        Tier 2: stop the spooler, empty the spool directory, start it again.

        Raises:
            PrivilegeError: If the process is not running as administrator
            SpoolerError: If the service could not be restarted
        """
        result = self.runner.run(self.reset_script(), timeout=self.reset_timeout)
        if result.contains(Sentinels.ADMIN_REQUIRED):
            raise PrivilegeError("restart the print spooler")
        if not result.contains(Sentinels.SPOOLER_RESET):
            raise SpoolerError("restart", result.failure_detail())

    def recover(self) -> SpoolerRecoveryResult:
        """
        Run the two-tier recovery under the exclusive spooler lock.

        Returns:
            SpoolerRecoveryResult; recovery failures are returned, not raised

        Raises:
            PrinterBusyError: If in-flight dispatches kept the spooler lock busy
        """
        actions: List[str] = []

        with self.locks.spooler():
            self.state = SpoolerState.STUCK
            logger.info("Spooler recovery started")
            self.state = SpoolerState.RECOVERING

            with timed_operation("Spooler queue clear", log_level="info"):
                try:
                    cleared = self.clear_stuck_queues()
                except PosPrintError as e:
                    tier1_error = e
                    logger.warning("Non-privileged queue clear failed, trying spooler restart",
                                   error=e.message)
                else:
                    actions.append(f"Cleared {cleared} job(s) from printers pending deletion")
                    self._sleep(self.settle_seconds)
                    return self._recovered(tier=1, actions=actions)

            actions.append(f"Queue clear failed: {tier1_error.message}")

            try:
                with timed_operation("Spooler restart", log_level="info"):
                    self.restart_spooler()
            except PrivilegeError as e:
                # Not retried: the privilege will not appear on its own
                logger.error("Spooler restart requires administrator privileges", error_code=e.error_code)
                return self._failed(tier=2, error=e, actions=actions)
            except PosPrintError as e:
                logger.error("Spooler restart failed", error=e.message, error_code=e.error_code)
                return self._failed(tier=2, error=e, actions=actions)

            actions.append(f"Restarted {self.service_name} service and cleared spool directory")
            self._sleep(self.stabilize_seconds)
            return self._recovered(tier=2, actions=actions)

    def reset_spooler(self) -> bool:
        """Recover the spooler; True when either tier succeeded."""
        return self.recover().success

    def _recovered(self, tier: int, actions: List[str]) -> SpoolerRecoveryResult:
        self.state = SpoolerState.HEALTHY
        self.last_reset = datetime.now()
        logger.info("Spooler recovery succeeded", tier=tier)
        return SpoolerRecoveryResult(success=True, tier=tier, actions=actions, state=self.state)

    def _failed(self, tier: int, error: PosPrintError, actions: List[str]) -> SpoolerRecoveryResult:
        self.state = SpoolerState.UNRECOVERABLE
        return SpoolerRecoveryResult(
            success=False,
            tier=tier,
            error=error.message,
            error_code=error.error_code,
            actions=actions,
            state=self.state
        )

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def get_service_status(self) -> str:
        """
        Raw service status text ("Running", "Stopped", ...).

        Raises:
            SpoolerError: If the service could not be queried
        """
        result = self.runner.run(self.service_status_script(), timeout=self.service_query_timeout)
        if not result.ok:
            raise SpoolerError("status query", result.failure_detail())
        lines = [line.strip() for line in result.stdout.splitlines() if line.strip()]
        if not lines:
            raise SpoolerError("status query", "no output")
        return lines[-1]

    def check_spooler_health(self) -> bool:
        """Whether the spooler service is running. Query failures count as unhealthy."""
        try:
            status = self.get_service_status()
        except PosPrintError as e:
            logger.error("Failed to check spooler health", error=e.message)
            return False

        running = status == "Running"
        if not running:
            logger.warning("Spooler not running", service_status=status)
        return running

    def get_queue_length(self) -> int:
        """
        Number of jobs queued across all printers.

        Raises:
            SpoolerError: If the queue could not be read
        """
        result = self.runner.run(self.queue_length_script(), timeout=self.service_query_timeout)
        if not result.ok:
            raise SpoolerError("queue length query", result.failure_detail())
        try:
            return int(result.stdout.strip().splitlines()[-1])
        except (IndexError, ValueError):
            raise SpoolerError("queue length query", f"unexpected output: {result.stdout.strip()!r}")

    def find_stuck_jobs(self, min_age_minutes: int = 5) -> List[Dict[str, Any]]:
        """
        Jobs that have been queued longer than ``min_age_minutes``.

        Raises:
            SpoolerError: If the jobs could not be listed
        """
        result = self.runner.run(self.stuck_jobs_script(min_age_minutes), timeout=self.service_query_timeout)
        if not result.ok:
            raise SpoolerError("stuck job query", result.failure_detail())
        text = result.stdout.strip()
        if not text:
            return []
        try:
            jobs = json.loads(text)
        except json.JSONDecodeError as e:
            raise SpoolerError("stuck job query", f"invalid JSON output: {e}")
        if isinstance(jobs, dict):
            jobs = [jobs]
        if jobs:
            logger.warning("Found stuck print jobs", count=len(jobs), min_age_minutes=min_age_minutes)
        return jobs or []

    def get_status(self) -> SpoolerStatus:
        """Snapshot of service state, queue length and recovery state."""
        service_status = None
        try:
            service_status = self.get_service_status()
        except PosPrintError as e:
            logger.warning("Spooler status unavailable", error=e.message)

        queue_length = 0
        try:
            queue_length = self.get_queue_length()
        except PosPrintError as e:
            logger.warning("Spooler queue length unavailable", error=e.message)

        running = service_status == "Running"
        state = self.state
        if not running and state == SpoolerState.HEALTHY:
            state = SpoolerState.STUCK

        return SpoolerStatus(
            running=running,
            service_status=service_status,
            queue_length=queue_length,
            state=state,
            last_reset=self.last_reset
        )
