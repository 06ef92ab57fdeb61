"""Pydantic models for posprint."""

from .printer import (
    PrinterStatusCode,
    DriverType,
    RecommendedMethod,
    ConnectionType,
    SpoolerState,
    Printer,
    ExtendedStatus,
    StatusInterpretation,
    DiagnosticsResult,
    DriverClassification,
    SpoolerStatus,
    SpoolerRecoveryResult,
)
from .dispatch import (
    DispatchMode,
    PrintPath,
    PrintOptions,
    PrintRequest,
    StrategyAttempt,
    DispatchResult,
)

__all__ = [
    "PrinterStatusCode",
    "DriverType",
    "RecommendedMethod",
    "ConnectionType",
    "SpoolerState",
    "Printer",
    "ExtendedStatus",
    "StatusInterpretation",
    "DiagnosticsResult",
    "DriverClassification",
    "SpoolerStatus",
    "SpoolerRecoveryResult",
    "DispatchMode",
    "PrintPath",
    "PrintOptions",
    "PrintRequest",
    "StrategyAttempt",
    "DispatchResult",
]
