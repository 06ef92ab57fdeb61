"""Application-wide configuration constants.

This module centralizes the fixed values used by the transports, the
diagnostics engine and the spooler service. Values that operators may need to
tune are mirrored as settings in ``posprint.utils.config``.
"""

from typing import Final, Tuple


class TransportTimeouts:
    """Per-strategy subprocess deadlines (in seconds).

    A strategy whose subprocess exceeds its deadline is force-terminated and
    recorded as a failed attempt.
    """

    MANAGEMENT_OBJECT: Final[int] = 15
    """Win32_Printer lookup plus Out-Printer"""

    PRINT_QUEUE: Final[int] = 10
    """System.Printing queue job"""

    PORT_COPY: Final[int] = 10
    """Binary copy to the printer port"""

    LEGACY_COMMAND: Final[int] = 10
    """print.exe invocation"""

    STATUS_QUERY: Final[int] = 10
    """Extended status lookup for a single printer"""

    ENUMERATION: Final[int] = 15
    """Full printer enumeration"""

    SERVICE_QUERY: Final[int] = 10
    """Spooler service status / job count queries"""

    KILL_GRACE: Final[int] = 5
    """Wait for a killed process tree to exit and release its pipes"""


class SpoolerTimings:
    """Waits and deadlines used by spooler recovery (in seconds)."""

    QUEUE_CLEAR_TIMEOUT: Final[int] = 10
    """Deadline for the non-privileged queue clear"""

    QUEUE_SETTLE_WAIT: Final[float] = 2.0
    """Wait after clearing queues so printer state can settle"""

    RESET_TIMEOUT: Final[int] = 30
    """Deadline for stop / clear / start of the spooler service"""

    RESET_STABILIZE_WAIT: Final[float] = 3.0
    """Wait after the spooler restarts before it is used again"""

    POST_RESET_RETRY_WAIT: Final[float] = 2.0
    """Wait between a successful reset and the retried dispatch"""

    SERVICE_NAME: Final[str] = "Spooler"
    """Windows service name of the print spooler"""


class RetrySettings:
    """Retry configuration for operations that may fail transiently.

    Dispatch never retries a strategy on its own; these values are used by
    printer enumeration and by the opt-in ``RetryingTransport`` wrapper.
    """

    MAX_ATTEMPTS: Final[int] = 3
    BASE_DELAY_SECONDS: Final[float] = 1.0
    MAX_DELAY_SECONDS: Final[float] = 30.0
    BACKOFF_MULTIPLIER: Final[float] = 2.0
    JITTER_FACTOR: Final[float] = 0.25
    """Random jitter factor (±25%) applied to each delay"""

    RETRYABLE_ERRORS: Final[Tuple[str, ...]] = (
        "timeout",
        "timed out",
        "network",
        "connection",
        "temporary",
        "busy",
        "unavailable",
    )

    # Printer enumeration
    DETECTION_MAX_ATTEMPTS: Final[int] = 2
    DETECTION_BASE_DELAY_SECONDS: Final[float] = 0.5
    DETECTION_MAX_DELAY_SECONDS: Final[float] = 5.0
    DETECTION_RETRYABLE_ERRORS: Final[Tuple[str, ...]] = ("timeout", "timed out", "temporary", "busy")


class Sentinels:
    """Markers a script must print for its outcome to count as success.

    A zero exit code alone is never trusted.
    """

    MANAGEMENT_OBJECT: Final[str] = "WMI_SUCCESS"
    PRINT_QUEUE: Final[str] = "NET_SUCCESS"
    PORT_COPY: Final[str] = "COPY_SUCCESS"
    LEGACY_COMMAND: Final[str] = "PRINT_SUCCESS"
    QUEUE_CLEARED: Final[str] = "QUEUE_CLEARED"
    SPOOLER_RESET: Final[str] = "SPOOLER_RESET_SUCCESS"
    ADMIN_REQUIRED: Final[str] = "ADMIN_REQUIRED"


class MethodNames:
    """Strategy names reported in ``DispatchResult.method_used``."""

    MANAGEMENT_OBJECT: Final[str] = "WMI"
    PRINT_QUEUE: Final[str] = "NET PRINT"
    PORT_COPY: Final[str] = "COPY"
    LEGACY_COMMAND: Final[str] = "PRINT"
    RAW_SCRIPT: Final[str] = "PowerShell Raw"
    ALL_FAILED: Final[str] = "All methods failed"


DEFAULT_JOB_NAME: Final[str] = "POS-Receipt"
DEFAULT_POWERSHELL: Final[str] = "powershell.exe"
