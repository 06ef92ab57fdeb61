"""Print engine services: query, diagnostics, classification, dispatch and spooler recovery."""

from .printer_query import PrinterQuery, WindowsPrinterQuery
from .driver_classifier import classify, detect_connection_type, analyze_silent_capability
from .diagnostics_service import DiagnosticsService, interpret_status_code, troubleshooting_steps
from .locks import PrinterLockRegistry
from .spooler_service import SpoolerService
from .print_dispatcher import PrintDispatcher, order_for
from .print_service import PrintService

__all__ = [
    "PrinterQuery",
    "WindowsPrinterQuery",
    "classify",
    "detect_connection_type",
    "analyze_silent_capability",
    "DiagnosticsService",
    "interpret_status_code",
    "troubleshooting_steps",
    "PrinterLockRegistry",
    "SpoolerService",
    "PrintDispatcher",
    "order_for",
    "PrintService",
]
