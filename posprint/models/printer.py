"""
Printer models for posprint.
Pydantic models for printer snapshots, diagnostics and driver classification.
"""
from enum import Enum, IntEnum
from typing import Optional, List
from datetime import datetime
from pydantic import BaseModel, Field


class PrinterStatusCode(IntEnum):
    """Win32_Printer ``PrinterState`` values interpreted by diagnostics.

    Not ``PrinterStatus``, whose values (3 Idle, 4 Printing, 7 Offline, ...)
    follow a different table.
    """
    READY = 0
    PAUSED = 1
    ERROR = 2
    PENDING_DELETION = 3
    PAPER_JAM = 4
    PAPER_OUT = 5
    MANUAL_FEED = 6
    PAPER_PROBLEM = 7
    OFFLINE = 8


class DriverType(str, Enum):
    """Driver families with different silent-printing capability."""
    THERMAL = "thermal"
    GENERIC_80_NORMAL = "generic-80-normal"
    GENERIC = "generic"
    TEXT_ONLY = "text-only"


class RecommendedMethod(str, Enum):
    """Preferred delivery path for a driver."""
    DIRECT_USB = "direct_usb"
    WINDOWS_SPOOLER = "windows_spooler"
    HYBRID = "hybrid"


class ConnectionType(str, Enum):
    """Physical connection inferred from the port name."""
    USB = "USB"
    NETWORK = "NETWORK"
    SERIAL = "SERIAL"
    BLUETOOTH = "BLUETOOTH"
    VIRTUAL = "VIRTUAL"
    UNKNOWN = "UNKNOWN"


class SpoolerState(str, Enum):
    """Lifecycle of the print spooler as seen by recovery."""
    HEALTHY = "healthy"
    STUCK = "stuck"
    RECOVERING = "recovering"
    UNRECOVERABLE = "unrecoverable"


class Printer(BaseModel):
    """Snapshot of an OS-registered printer. Re-queried on every diagnostic call."""
    name: str = Field(..., description="Display name, matched exactly")
    driver_name: Optional[str] = Field(None, description="Installed driver name")
    port_name: Optional[str] = Field(None, description="Port the driver writes to (USB001, COM1, IP_...)")
    status_code: Optional[int] = Field(None, description="Raw Win32_Printer PrinterState")
    work_offline: bool = Field(False, description="Whether the 'Use Printer Offline' flag is set")
    is_online: bool = Field(False, description="Derived online flag, filled in by diagnostics")
    is_accessible: bool = Field(False, description="Derived accessibility flag, filled in by diagnostics")


class ExtendedStatus(BaseModel):
    """Result of a per-printer status query."""
    printer_name: str
    status_code: Optional[int] = None
    work_offline: bool = False
    driver_name: Optional[str] = None
    port_name: Optional[str] = None


class StatusInterpretation(BaseModel):
    """Human label and flags for a status code."""
    code: Optional[int] = None
    label: str
    is_accessible: bool
    is_online: bool = True


class DiagnosticsResult(BaseModel):
    """Outcome of ``DiagnosticsService.diagnose``.

    ``is_online == False`` implies ``is_accessible == False``; a printer that
    does not exist is never accessible.
    """
    printer_name: str = Field(..., description="Name that was diagnosed")
    printer_exists: bool = Field(False, description="Whether the name was found in the enumeration")
    is_accessible: bool = Field(False, description="Whether a print job can be submitted")
    status: str = Field("Unknown", description="Human-readable status label")
    is_online: bool = Field(False, description="Whether the printer is reachable")
    status_code: Optional[int] = Field(None, description="Raw status code when one was read")
    available_printers: List[str] = Field(default_factory=list, description="All enumerated printer names")
    error_detail: Optional[str] = Field(None, description="Failure reason when diagnostics were incomplete")
    troubleshooting_steps: List[str] = Field(default_factory=list, description="Ordered remediation steps")
    checked_at: datetime = Field(default_factory=datetime.now)

    @property
    def is_pending_deletion(self) -> bool:
        return self.status_code == PrinterStatusCode.PENDING_DELETION


class DriverClassification(BaseModel):
    """Driver-specific handling decision."""
    driver_type: DriverType
    silent_capable: bool = Field(False, description="Whether a dialog-free managed print path exists")
    recommended_method: RecommendedMethod
    supports_direct_usb: bool = False
    supports_spooler: bool = True
    connection_type: ConnectionType = ConnectionType.UNKNOWN
    details: str = ""


class SpoolerStatus(BaseModel):
    """Print spooler service status."""
    running: bool = Field(False, description="Whether the Spooler service is running")
    service_status: Optional[str] = Field(None, description="Raw service status text")
    queue_length: int = Field(0, description="Jobs currently queued across all printers")
    state: SpoolerState = SpoolerState.HEALTHY
    last_reset: Optional[datetime] = None


class SpoolerRecoveryResult(BaseModel):
    """Outcome of a two-tier spooler recovery."""
    success: bool
    tier: int = Field(0, description="Tier that succeeded or was last attempted (1 or 2)")
    error: Optional[str] = None
    error_code: Optional[str] = None
    actions: List[str] = Field(default_factory=list, description="Actions taken, in order")
    state: SpoolerState = SpoolerState.HEALTHY
