"""Configuration module for posprint.

This module contains the configuration constants used throughout the
transports and services.
"""

from .constants import (
    TransportTimeouts,
    SpoolerTimings,
    RetrySettings,
    Sentinels,
    MethodNames,
    DEFAULT_JOB_NAME,
    DEFAULT_POWERSHELL,
)

__all__ = [
    "TransportTimeouts",
    "SpoolerTimings",
    "RetrySettings",
    "Sentinels",
    "MethodNames",
    "DEFAULT_JOB_NAME",
    "DEFAULT_POWERSHELL",
]
