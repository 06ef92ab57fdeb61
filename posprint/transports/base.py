"""
Base classes for transport strategies.

Defines the interface shared by every way of getting a payload to a Windows
printer, plus the common attempt lifecycle: write the payload to a fresh temp
file, run a PowerShell script against it with a hard deadline, and decide the
outcome from the script's success sentinel.
"""

import os
import tempfile
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional
import structlog

from posprint.config.constants import DEFAULT_JOB_NAME
from posprint.utils.errors import PosPrintError
from posprint.utils.powershell import CommandResult, PowerShellRunner, PowerShellScript

logger = structlog.get_logger()

UNLINK_ATTEMPTS = 5
UNLINK_RETRY_DELAY = 0.2


@dataclass
class TransportOutcome:
    """Result of one transport attempt. Truthy iff the payload was delivered."""

    success: bool
    """Whether the strategy's success sentinel was observed"""

    detail: str = ""
    """Failure reason, or a short note on success"""

    def __bool__(self) -> bool:
        return self.success


class Transport(ABC):
    """Anything the dispatcher can ask to deliver a payload."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the name reported in dispatch results."""
        pass

    @abstractmethod
    def attempt(self, printer_name: str, payload: bytes) -> TransportOutcome:
        """Deliver ``payload`` once. Delivery failures are returned, not raised."""
        pass


class TransportStrategy(Transport):
    """Abstract base class for script-backed transport strategies.

    Subclasses provide ``name``, ``sentinel`` and ``build_script``. The
    shared ``attempt`` never raises: every low-level error becomes a failed
    ``TransportOutcome``.
    """

    sentinel: str = ""
    """Line the script must print for the attempt to count as delivered"""

    file_prefix: str = "posprint"
    """Prefix for the per-attempt payload file"""

    def __init__(
        self,
        runner: PowerShellRunner,
        timeout: float,
        job_name: str = DEFAULT_JOB_NAME,
        temp_dir: Optional[str] = None
    ):
        """Initialize transport strategy.

        Args:
            runner: PowerShell runner used for every script
            timeout: Deadline in seconds for the strategy's script
            job_name: Job name for strategies that create named jobs
            temp_dir: Directory for payload files (system temp dir if None)
        """
        self.runner = runner
        self.timeout = timeout
        self.job_name = job_name
        self.temp_dir = temp_dir
        self.logger = logger.bind(strategy=self.__class__.__name__)

    @abstractmethod
    def build_script(self, printer_name: str, payload_path: str) -> PowerShellScript:
        """Build the script that sends ``payload_path`` to ``printer_name``."""
        pass

    def attempt(self, printer_name: str, payload: bytes) -> TransportOutcome:
        """Try to deliver ``payload`` to ``printer_name`` once.

        Args:
            printer_name: Exact printer display name
            payload: Raw bytes to send

        Returns:
            TransportOutcome; success requires the sentinel in stdout
        """
        log = self.logger.bind(printer=printer_name)
        try:
            with self.payload_file(payload) as payload_path:
                script = self.build_script(printer_name, payload_path)
                result = self.runner.run(script, timeout=self.timeout)
        except PosPrintError as e:
            log.warning("Transport attempt failed", error=e.message, error_code=e.error_code)
            return TransportOutcome(False, e.message)
        except (OSError, ValueError) as e:
            log.warning("Transport attempt failed", error=str(e), error_type=type(e).__name__)
            return TransportOutcome(False, f"{type(e).__name__}: {e}")

        return self.evaluate(result, log)

    def evaluate(self, result: CommandResult, log=None) -> TransportOutcome:
        """Map a script result to an outcome. Exit code 0 alone is not success."""
        log = log or self.logger
        if result.contains(self.sentinel):
            log.debug("Transport sentinel observed", sentinel=self.sentinel)
            return TransportOutcome(True, f"{self.name} delivered")

        detail = result.failure_detail()
        if result.ok:
            detail = f"{self.sentinel} not reported ({detail})"
        log.debug("Transport attempt unsuccessful", returncode=result.returncode, detail=detail)
        return TransportOutcome(False, detail)

    @contextmanager
    def payload_file(self, payload: bytes) -> Iterator[str]:
        """Write ``payload`` to a uniquely named temp file, removed on exit."""
        fd, path = tempfile.mkstemp(prefix=f"{self.file_prefix}-", suffix=".prn", dir=self.temp_dir)
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(payload)
            yield path
        finally:
            self._remove_payload(path)

    def _remove_payload(self, path: str) -> None:
        # Windows releases handles of a killed process tree asynchronously
        for attempt in range(1, UNLINK_ATTEMPTS + 1):
            try:
                os.unlink(path)
                return
            except FileNotFoundError:
                return
            except OSError as e:
                if attempt == UNLINK_ATTEMPTS:
                    self.logger.warning("Could not remove payload file", path=path, error=str(e))
                    return
                time.sleep(UNLINK_RETRY_DELAY)

    def __repr__(self):
        return f"{self.__class__.__name__}(name='{self.name}', timeout={self.timeout})"
