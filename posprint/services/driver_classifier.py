"""
Driver classifier.

Pure, total and deterministic: decides from a driver name and port name how a
printer should be driven. All matching is case-insensitive substring search.
"""

import re
from typing import Optional, Tuple

from posprint.models import ConnectionType, DriverClassification, DriverType, RecommendedMethod

THERMAL_FRAGMENTS: Tuple[str, ...] = (
    "rongta",
    "thermal",
    "receipt",
    "pos",
    "escpos",
    "tm-",
    "rp-",
    "tsp-",
    "star",
    "epson tm",
    "citizen ct",
    "bixolon",
)
"""Vendor and family fragments of thermal receipt drivers"""

GENERIC_FRAGMENTS: Tuple[str, ...] = (
    "generic",
    "text only",
    "normal",
    "80normal",
    "microsoft",
    "windows",
)
"""Fragments of built-in and generic drivers"""

# Checked in order; the first family with a matching fragment wins
CONNECTION_PATTERNS: Tuple[Tuple[ConnectionType, Tuple[str, ...]], ...] = (
    (ConnectionType.USB, ("usb",)),
    (ConnectionType.NETWORK, ("ip_", "tcp_", "network", "http")),
    (ConnectionType.SERIAL, ("com", "serial")),
    (ConnectionType.BLUETOOTH, ("bluetooth", "bt_", "bth:")),
    (ConnectionType.VIRTUAL, ("file:", "nul:", "microsoft", "documents", "print to file")),
)

_IPV4 = re.compile(r"\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}")


def _contains_any(text: str, fragments: Tuple[str, ...]) -> bool:
    return any(fragment in text for fragment in fragments)


def detect_connection_type(port_name: Optional[str]) -> ConnectionType:
    """
    Infer the physical connection from a port name.

    Examples:
        >>> detect_connection_type("USB001")
        <ConnectionType.USB: 'USB'>
        >>> detect_connection_type("IP_192.168.1.50")
        <ConnectionType.NETWORK: 'NETWORK'>
    """
    port = (port_name or "").strip().lower()
    if not port:
        return ConnectionType.UNKNOWN

    for connection_type, patterns in CONNECTION_PATTERNS:
        if _contains_any(port, patterns):
            return connection_type
        if connection_type is ConnectionType.NETWORK and (port.startswith("\\\\") or _IPV4.search(port)):
            return connection_type
    return ConnectionType.UNKNOWN


def analyze_silent_capability(driver_name: Optional[str]) -> Tuple[DriverType, bool, str]:
    """
    Classify the driver family and whether it prints without dialogs.

    Returns:
        Tuple of (driver type, silent capable, explanation)
    """
    driver = (driver_name or "").lower()

    if "80normal" in driver or "80 normal" in driver:
        return (
            DriverType.GENERIC_80_NORMAL,
            False,
            "Generic 80mm driver: requires raw transport for dialog-free printing"
        )
    if "thermal" in driver or "escpos" in driver or "esc/pos" in driver:
        return (
            DriverType.THERMAL,
            True,
            "Thermal driver: supports silent printing through the managed print path"
        )
    if "text" in driver or "generic" in driver:
        return (
            DriverType.TEXT_ONLY,
            False,
            "Text-only driver: may show dialogs, use raw transport"
        )
    return (
        DriverType.GENERIC,
        False,
        "Unrecognized driver: silent printing not guaranteed"
    )


def classify(driver_name: Optional[str], port_name: Optional[str] = None) -> DriverClassification:
    """
    Decide how a printer with this driver and port should be driven.

    Args:
        driver_name: Installed driver name (may be empty)
        port_name: Printer port name (may be empty)

    Returns:
        DriverClassification; never raises
    """
    driver = (driver_name or "").lower()
    port = (port_name or "").lower()

    driver_type, silent_capable, silent_details = analyze_silent_capability(driver_name)
    connection_type = detect_connection_type(port_name)

    if _contains_any(driver, THERMAL_FRAGMENTS):
        method = RecommendedMethod.DIRECT_USB
        supports_direct_usb = True
        reason = "Thermal/receipt driver detected: direct port transports preferred"
    elif _contains_any(driver, GENERIC_FRAGMENTS):
        method = RecommendedMethod.WINDOWS_SPOOLER
        supports_direct_usb = False
        reason = "Generic or built-in driver: Windows spooler preferred"
    elif "usb" in port:
        method = RecommendedMethod.HYBRID
        supports_direct_usb = True
        reason = "USB port with unrecognized driver: try direct paths, then spooler"
    else:
        method = RecommendedMethod.WINDOWS_SPOOLER
        supports_direct_usb = False
        reason = "Unrecognized driver: Windows spooler"

    return DriverClassification(
        driver_type=driver_type,
        silent_capable=silent_capable,
        recommended_method=method,
        supports_direct_usb=supports_direct_usb,
        supports_spooler=True,
        connection_type=connection_type,
        details=f"{reason}. {silent_details}"
    )
