"""
Standardized error types for posprint.

Every error carries a user-facing message, a machine-readable error code and
a details dictionary so callers can log or surface them consistently.

Error Format:
    {
        "status": "error",
        "message": "User-friendly error message",
        "error_code": "PRINTER_NOT_FOUND",
        "details": {
            "printer_name": "RONGTA 80mm Series Printer",
            "available_printers": ["..."]
        },
        "timestamp": "2025-11-08T15:30:00"
    }

Usage:
    from posprint.utils.errors import PrinterNotFoundError

    if not diagnostics.printer_exists:
        raise PrinterNotFoundError(printer_name, diagnostics.available_printers)

Transport and diagnostics failures are normally converted into result values
(``TransportOutcome``, ``DispatchResult``, ``DiagnosticsResult``) and only
cross public boundaries as exceptions where noted.
"""

import re
from datetime import datetime
from typing import Optional, Dict, Any, List


# =============================================================================
# Base Exception Class
# =============================================================================

class PosPrintError(Exception):
    """
    Base exception for all posprint errors.

    Attributes:
        message: User-friendly error message
        error_code: Machine-readable error code
        details: Additional context as dictionary
        timestamp: When the error was created

    Example:
        >>> error = PosPrintError(
        ...     message="Spooler not running",
        ...     error_code="SPOOLER_DOWN",
        ...     details={"service": "Spooler"}
        ... )
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize PosPrintError.

        Args:
            message: User-friendly error message
            error_code: Machine-readable error code (default: derived from class name)
            details: Additional error context
        """
        self.message = message
        self.error_code = error_code or self._generate_error_code()
        self.details = details or {}
        self.timestamp = datetime.now()
        super().__init__(message)

    def _generate_error_code(self) -> str:
        """
        Generate error code from class name.

        Converts class name from CamelCase to UPPER_SNAKE_CASE.
        Example: PrinterNotFoundError -> PRINTER_NOT_FOUND

        Returns:
            Error code string
        """
        name = self.__class__.__name__
        if name.endswith('Error'):
            name = name[:-5]
        s1 = re.sub('(.)([A-Z][a-z]+)', r'\1_\2', name)
        return re.sub('([a-z0-9])([A-Z])', r'\1_\2', s1).upper()

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert error to dictionary format.

        Returns:
            Dictionary with error information
        """
        return {
            "status": "error",
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details,
            "timestamp": self.timestamp.isoformat()
        }


# =============================================================================
# Transport Errors
# =============================================================================

class TransportError(PosPrintError):
    """A single transport strategy failed to deliver the payload."""

    def __init__(self, method_name: str, reason: str, details: Optional[Dict[str, Any]] = None):
        """
        Initialize TransportError.

        Args:
            method_name: Name of the transport strategy
            reason: Failure reason
            details: Additional context
        """
        error_details = {"method_name": method_name, "reason": reason}
        if details:
            error_details.update(details)

        super().__init__(
            message=f"{method_name} failed: {reason}",
            details=error_details
        )
        self.method_name = method_name
        self.reason = reason


class TransportTimeoutError(PosPrintError):
    """An external command exceeded its deadline and was terminated."""

    def __init__(self, operation: str, timeout_seconds: float, details: Optional[Dict[str, Any]] = None):
        error_details = {"operation": operation, "timeout_seconds": timeout_seconds}
        if details:
            error_details.update(details)

        super().__init__(
            message=f"{operation} timed out after {timeout_seconds:g}s",
            details=error_details
        )
        self.operation = operation
        self.timeout_seconds = timeout_seconds


class ShellUnavailableError(PosPrintError):
    """The PowerShell executable could not be started."""

    def __init__(self, executable: str, reason: str):
        super().__init__(
            message=f"Cannot start '{executable}': {reason}",
            details={"executable": executable, "reason": reason}
        )


# =============================================================================
# Printer Errors
# =============================================================================

class PrinterNotFoundError(PosPrintError):
    """Printer not found in the OS printer enumeration."""

    def __init__(
        self,
        printer_name: str,
        available_printers: Optional[List[str]] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize PrinterNotFoundError.

        Args:
            printer_name: Name that was looked up
            available_printers: Names that were enumerated instead
            details: Additional context
        """
        error_details: Dict[str, Any] = {"printer_name": printer_name}
        if available_printers is not None:
            error_details["available_printers"] = list(available_printers)
        if details:
            error_details.update(details)

        message = f"Printer '{printer_name}' not found"
        if available_printers:
            message += f". Available printers: {', '.join(available_printers)}"

        super().__init__(message=message, details=error_details)


class PrinterUnavailableError(PosPrintError):
    """Printer exists but reports a state that prevents printing."""

    def __init__(
        self,
        printer_name: str,
        status: str,
        troubleshooting_steps: Optional[List[str]] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        error_details: Dict[str, Any] = {
            "printer_name": printer_name,
            "status": status,
            "troubleshooting_steps": list(troubleshooting_steps or []),
        }
        if details:
            error_details.update(details)

        super().__init__(
            message=f"Printer '{printer_name}' exists but is not accessible. Status: {status}",
            details=error_details
        )


class PrinterBusyError(PosPrintError):
    """Printer (or the spooler) is locked by another operation."""

    def __init__(self, resource: str, timeout_seconds: float):
        super().__init__(
            message=f"Timed out after {timeout_seconds:g}s waiting for {resource}",
            details={"resource": resource, "timeout_seconds": timeout_seconds}
        )


class DiagnosticsError(PosPrintError):
    """Printer enumeration or status query returned unusable data."""

    def __init__(self, operation: str, reason: str, details: Optional[Dict[str, Any]] = None):
        error_details = {"operation": operation, "reason": reason}
        if details:
            error_details.update(details)

        super().__init__(
            message=f"{operation} failed: {reason}",
            details=error_details
        )


# =============================================================================
# Spooler Errors
# =============================================================================

class PrivilegeError(PosPrintError):
    """Operation requires administrator rights the process does not hold."""

    def __init__(self, operation: str):
        super().__init__(
            message=f"Administrator privileges required to {operation}",
            details={"operation": operation}
        )


class SpoolerError(PosPrintError):
    """Print spooler service operation failed."""

    def __init__(self, operation: str, reason: str, details: Optional[Dict[str, Any]] = None):
        error_details = {"operation": operation, "reason": reason}
        if details:
            error_details.update(details)

        super().__init__(
            message=f"Spooler {operation} failed: {reason}",
            details=error_details
        )


# =============================================================================
# Configuration Errors
# =============================================================================

class ConfigurationError(PosPrintError):
    """Invalid or inconsistent configuration."""

    def __init__(self, setting: str, reason: str):
        super().__init__(
            message=f"Invalid setting '{setting}': {reason}",
            details={"setting": setting, "reason": reason}
        )
