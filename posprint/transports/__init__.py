"""
Transport strategies: the interchangeable ways of getting a payload to a
Windows printer.
"""

from typing import Dict

from posprint.config.constants import MethodNames
from posprint.utils.config import PosPrintSettings
from posprint.utils.powershell import PowerShellRunner
from .base import Transport, TransportOutcome, TransportStrategy
from .management_object import ManagementObjectTransport
from .print_queue import PrintQueueTransport
from .port_copy import PortCopyTransport
from .legacy_command import LegacyCommandTransport
from .raw_script import RawScriptTransport
from .retrying import RetryingTransport


def build_transports(runner: PowerShellRunner, settings: PosPrintSettings) -> Dict[str, Transport]:
    """
    Build every transport keyed by its reported name.

    Args:
        runner: Shared PowerShell runner
        settings: Source of timeouts, job name and temp dir

    Returns:
        Dict mapping method name to transport, including the composite
    """
    common = {"job_name": settings.job_name, "temp_dir": settings.temp_dir}
    management = ManagementObjectTransport(runner, settings.management_object_timeout, **common)
    queue = PrintQueueTransport(runner, settings.print_queue_timeout, **common)
    copy = PortCopyTransport(runner, settings.port_copy_timeout, **common)
    legacy = LegacyCommandTransport(runner, settings.legacy_command_timeout, **common)

    return {
        MethodNames.MANAGEMENT_OBJECT: management,
        MethodNames.PRINT_QUEUE: queue,
        MethodNames.PORT_COPY: copy,
        MethodNames.LEGACY_COMMAND: legacy,
        MethodNames.RAW_SCRIPT: RawScriptTransport([management, queue, copy, legacy]),
    }


__all__ = [
    "Transport",
    "TransportOutcome",
    "TransportStrategy",
    "ManagementObjectTransport",
    "PrintQueueTransport",
    "PortCopyTransport",
    "LegacyCommandTransport",
    "RawScriptTransport",
    "RetryingTransport",
    "build_transports",
]
