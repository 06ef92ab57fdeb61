"""
PowerShell command layer.

Every OS interaction in posprint is a PowerShell script built with
``PowerShellScript``, written to a temp ``.ps1`` file and executed by
``PowerShellRunner`` with a hard deadline. User-controlled values (printer
names, file paths, port names) only ever enter a script through
``quote_literal`` so they are never interpreted by the shell.
"""

import os
import re
import signal
import subprocess
import tempfile
from dataclasses import dataclass
from typing import List, Optional, Tuple
import structlog

from posprint.config.constants import DEFAULT_POWERSHELL, TransportTimeouts
from posprint.utils.errors import ShellUnavailableError, TransportTimeoutError

logger = structlog.get_logger()

# PowerShell treats typographic single quotes as quote characters too
_SINGLE_QUOTES = ("'", "\u2018", "\u2019", "\u201a", "\u201b")
_VARIABLE_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_CREATE_NO_WINDOW = getattr(subprocess, "CREATE_NO_WINDOW", 0)


def quote_literal(value: str) -> str:
    """
    Render ``value`` as a PowerShell single-quoted string literal.

    Single-quoted strings are never expanded by PowerShell, so the only
    characters that need escaping are the quote characters themselves,
    which are doubled.

    Args:
        value: Arbitrary text

    Returns:
        PowerShell literal including the surrounding quotes

    Raises:
        ValueError: If ``value`` contains a NUL character

    Examples:
        >>> quote_literal("RONGTA 80mm")
        "'RONGTA 80mm'"
        >>> quote_literal("Bob's Printer")
        "'Bob''s Printer'"
    """
    if "\x00" in value:
        raise ValueError("PowerShell literals cannot contain NUL characters")
    escaped = "".join(ch * 2 if ch in _SINGLE_QUOTES else ch for ch in value)
    return f"'{escaped}'"


def escape_wql(value: str) -> str:
    r"""
    Escape ``value`` for use inside a single-quoted WQL string.

    Examples:
        >>> escape_wql("Bob's")
        "Bob\\'s"
    """
    return value.replace("\\", "\\\\").replace("'", "\\'")


def wql_name_filter(printer_name: str) -> str:
    """Build a ``Win32_Printer`` filter matching ``printer_name`` exactly."""
    return f"Name='{escape_wql(printer_name)}'"


class PowerShellScript:
    """
    Typed builder for a single PowerShell script.

    Values are bound to script variables with ``assign`` (always emitted as
    literals) and referenced from body lines as ``$name``. The rendered
    script wraps the body in ``try``/``catch`` so any terminating error ends
    the process with exit code 1 and a one-line reason on stdout.

    Usage:
        script = (
            PowerShellScript("copy-print")
            .assign("source", r"C:\\Temp\\copy-print-1.prn")
            .add("Write-Output $source")
        )
        runner.run(script, timeout=10)
    """

    def __init__(self, name: str, error_label: Optional[str] = None):
        """
        Args:
            name: Short slug used for the temp file name and in logs
            error_label: Prefix for the failure line (defaults to ``name``)
        """
        self.name = name
        self.error_label = error_label or name
        self._variables: List[Tuple[str, str]] = []
        self._lines: List[str] = []

    def assign(self, variable: str, value: str) -> "PowerShellScript":
        """Bind ``$variable`` to the literal ``value``."""
        if not _VARIABLE_NAME.match(variable):
            raise ValueError(f"Invalid PowerShell variable name: {variable!r}")
        self._variables.append((variable, value))
        return self

    def add(self, *lines: str) -> "PowerShellScript":
        """Append body lines."""
        self._lines.extend(lines)
        return self

    @property
    def variables(self) -> dict:
        return dict(self._variables)

    def render(self) -> str:
        """Render the complete script text."""
        out = [
            "[Console]::OutputEncoding = [System.Text.Encoding]::UTF8",
            "try {",
        ]
        for variable, value in self._variables:
            out.append(f"    ${variable} = {quote_literal(value)}")
        for line in self._lines:
            out.append(f"    {line}" if line else "")
        out.extend([
            "} catch {",
            f"    Write-Output ({quote_literal(self.error_label + ' Error: ')} + $_.Exception.Message)",
            "    exit 1",
            "}",
        ])
        return "\n".join(out) + "\n"

    def __repr__(self):
        return f"PowerShellScript(name='{self.name}', lines={len(self._lines)})"


@dataclass
class CommandResult:
    """Captured outcome of one PowerShell invocation."""

    returncode: int
    stdout: str
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def contains(self, sentinel: str) -> bool:
        """Whether ``sentinel`` appears on its own line of stdout."""
        return any(line.strip() == sentinel for line in self.stdout.splitlines())

    def failure_detail(self) -> str:
        """Last meaningful output line, for attempt logs."""
        for stream in (self.stderr, self.stdout):
            lines = [line.strip() for line in stream.splitlines() if line.strip()]
            if lines:
                return lines[-1]
        return f"exit code {self.returncode} without output"


def _decode(data: Optional[bytes]) -> str:
    if not data:
        return ""
    return data.decode("utf-8", errors="replace")


def _spawn_options() -> dict:
    """Start the shell as the root of its own process group."""
    if os.name == "nt":
        return {"creationflags": subprocess.CREATE_NEW_PROCESS_GROUP | _CREATE_NO_WINDOW}
    return {"start_new_session": True}


def kill_process_tree(process: subprocess.Popen, grace: float = TransportTimeouts.KILL_GRACE) -> None:
    """
    Kill ``process`` and every process it started, then reap it.

    ``cmd.exe`` and ``print.exe`` children inherit the output pipes and the
    payload file handle, so killing only the shell would leave them running.

    Args:
        process: Shell started with ``_spawn_options()``
        grace: Bound on waiting for the tree to exit and release its pipes
    """
    if os.name == "nt":
        try:
            subprocess.run(
                ["taskkill", "/F", "/T", "/PID", str(process.pid)],
                capture_output=True,
                timeout=grace,
                check=False,
                creationflags=_CREATE_NO_WINDOW
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.warning("taskkill failed", pid=process.pid, error=str(e))
    else:
        try:
            os.killpg(process.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass

    try:
        process.kill()
    except OSError:
        # already exited
        pass

    try:
        process.communicate(timeout=grace)
    except subprocess.TimeoutExpired:
        logger.error("Killed process tree still holds its pipes", pid=process.pid, grace=grace)
        for stream in (process.stdout, process.stderr):
            if stream is not None:
                stream.close()


class PowerShellRunner:
    """Execute ``PowerShellScript`` objects with a hard deadline."""

    def __init__(self, executable: str = DEFAULT_POWERSHELL, temp_dir: Optional[str] = None):
        """
        Args:
            executable: PowerShell executable name or path
            temp_dir: Directory for the temporary ``.ps1`` files
        """
        self.executable = executable
        self.temp_dir = temp_dir

    def build_command(self, script_path: str) -> List[str]:
        return [
            self.executable,
            "-NoProfile",
            "-NonInteractive",
            "-ExecutionPolicy", "Bypass",
            "-WindowStyle", "Hidden",
            "-File", script_path,
        ]

    def run(self, script: PowerShellScript, timeout: float) -> CommandResult:
        """
        Run ``script`` and capture its output.

        The script file only exists for the duration of the call. On timeout
        the PowerShell process and everything it started are killed before
        the error is raised.

        Args:
            script: Script to execute
            timeout: Deadline in seconds

        Returns:
            CommandResult with exit code and decoded output

        Raises:
            TransportTimeoutError: If the deadline expired
            ShellUnavailableError: If PowerShell could not be started
        """
        fd, script_path = tempfile.mkstemp(prefix=f"{script.name}-", suffix=".ps1", dir=self.temp_dir)
        try:
            # utf-8-sig so Windows PowerShell 5.1 reads non-ASCII printer names correctly
            with os.fdopen(fd, "w", encoding="utf-8-sig") as fh:
                fh.write(script.render())

            logger.debug("Running PowerShell script", script=script.name, timeout=timeout)
            try:
                process = subprocess.Popen(
                    self.build_command(script_path),
                    stdout=subprocess.PIPE,
                    stderr=subprocess.PIPE,
                    **_spawn_options()
                )
            except OSError as e:
                raise ShellUnavailableError(self.executable, str(e))

            try:
                stdout, stderr = process.communicate(timeout=timeout)
            except subprocess.TimeoutExpired:
                kill_process_tree(process)
                logger.warning("PowerShell script timed out and its process tree was killed",
                               script=script.name, timeout=timeout, pid=process.pid)
                raise TransportTimeoutError(script.name, timeout)

            result = CommandResult(
                returncode=process.returncode,
                stdout=_decode(stdout),
                stderr=_decode(stderr)
            )
            logger.debug("PowerShell script finished", script=script.name, returncode=result.returncode)
            return result
        finally:
            try:
                os.unlink(script_path)
            except FileNotFoundError:
                pass
