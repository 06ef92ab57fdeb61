"""
Configuration utilities and settings for posprint.
Handles environment variables, settings validation and startup checks.
"""

import os
import platform
import shutil
import tempfile
from typing import Optional
from pathlib import Path
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import structlog

from posprint.config.constants import (
    TransportTimeouts,
    SpoolerTimings,
    DEFAULT_JOB_NAME,
    DEFAULT_POWERSHELL,
)

logger = structlog.get_logger()


class PosPrintSettings(BaseSettings):
    """
    Print engine settings with validation.

    All settings are loaded from ``POSPRINT_``-prefixed environment variables
    or a ``.env`` file. Defaults match the behaviour receipt printers in the
    field have been tuned against.
    """

    # Logging
    log_level: str = Field(
        default="info",
        description="Logging level: debug, info, warning, error, critical"
    )
    log_file: Optional[str] = Field(
        default=None,
        description="Optional log file path in addition to stdout."
    )

    # Shell
    powershell_executable: str = Field(
        default=DEFAULT_POWERSHELL,
        description="PowerShell executable used to run transport and diagnostic scripts."
    )
    temp_dir: Optional[str] = Field(
        default=None,
        description="Directory for per-attempt payload and script files. Defaults to the system temp dir."
    )
    job_name: str = Field(
        default=DEFAULT_JOB_NAME,
        description="Job name shown in the Windows print queue."
    )

    # Transport timeouts
    management_object_timeout: int = Field(
        default=TransportTimeouts.MANAGEMENT_OBJECT,
        description="Timeout in seconds for the WMI / Out-Printer strategy.",
        ge=1,
        le=300
    )
    print_queue_timeout: int = Field(
        default=TransportTimeouts.PRINT_QUEUE,
        description="Timeout in seconds for the System.Printing queue strategy.",
        ge=1,
        le=300
    )
    port_copy_timeout: int = Field(
        default=TransportTimeouts.PORT_COPY,
        description="Timeout in seconds for the binary port copy strategy.",
        ge=1,
        le=300
    )
    legacy_command_timeout: int = Field(
        default=TransportTimeouts.LEGACY_COMMAND,
        description="Timeout in seconds for the print.exe strategy.",
        ge=1,
        le=300
    )

    # Diagnostics
    status_query_timeout: int = Field(
        default=TransportTimeouts.STATUS_QUERY,
        description="Timeout in seconds for a single printer status query.",
        ge=1,
        le=120
    )
    enumeration_timeout: int = Field(
        default=TransportTimeouts.ENUMERATION,
        description="Timeout in seconds for enumerating all printers.",
        ge=1,
        le=120
    )
    pending_deletion_accessible: bool = Field(
        default=True,
        description="Treat printers reporting 'Pending Deletion' (status 3) as accessible."
    )

    # Spooler recovery
    spooler_reset_timeout: int = Field(
        default=SpoolerTimings.RESET_TIMEOUT,
        description="Timeout in seconds for stopping, clearing and restarting the spooler.",
        ge=5,
        le=300
    )
    spooler_settle_seconds: float = Field(
        default=SpoolerTimings.QUEUE_SETTLE_WAIT,
        description="Wait after the non-privileged queue clear.",
        ge=0.0,
        le=60.0
    )
    spooler_stabilize_seconds: float = Field(
        default=SpoolerTimings.RESET_STABILIZE_WAIT,
        description="Wait after the spooler service restarts.",
        ge=0.0,
        le=60.0
    )
    spool_directory: Optional[str] = Field(
        default=None,
        description="Spool directory to clear. Defaults to %SystemRoot%\\System32\\spool\\PRINTERS."
    )

    # Concurrency
    lock_timeout_seconds: float = Field(
        default=120.0,
        description="How long dispatch or spooler reset waits for the printer lock.",
        gt=0.0,
        le=3600.0
    )

    model_config = SettingsConfigDict(
        env_prefix="POSPRINT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level setting."""
        valid_levels = ['debug', 'info', 'warning', 'error', 'critical']
        if v.lower() not in valid_levels:
            raise ValueError(
                f"Invalid log level '{v}'. Must be one of: {', '.join(valid_levels)}"
            )
        return v.lower()

    @field_validator('job_name')
    @classmethod
    def validate_job_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Job name must not be empty")
        return v

    @field_validator('powershell_executable')
    @classmethod
    def validate_powershell_executable(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("PowerShell executable must not be empty")
        return v

    @property
    def resolved_temp_dir(self) -> str:
        """Directory used for per-attempt temp files."""
        return self.temp_dir or tempfile.gettempdir()


# Cached settings instance; services receive settings explicitly
_settings: Optional[PosPrintSettings] = None


def get_settings() -> PosPrintSettings:
    """Get cached settings instance."""
    global _settings
    if _settings is None:
        _settings = PosPrintSettings()
    return _settings


def reload_settings() -> PosPrintSettings:
    """Reload settings from environment variables.

    Returns:
        Freshly loaded settings instance
    """
    global _settings
    _settings = PosPrintSettings()
    return _settings


def validate_settings_on_startup(settings: Optional[PosPrintSettings] = None) -> dict:
    """
    Check settings against the host before the engine is used.

    Pydantic validates types and ranges; this checks what only the host can
    answer (OS, PowerShell on PATH, writable temp dir).

    Args:
        settings: Settings to check. Defaults to ``get_settings()``.

    Returns:
        Dict with ``valid``, ``errors``, ``warnings`` and ``info`` lists
    """
    if settings is None:
        settings = get_settings()

    errors = []
    warnings = []
    info = []

    if platform.system() != "Windows":
        warnings.append(
            f"Running on {platform.system()}: transports require the Windows print subsystem"
        )

    if shutil.which(settings.powershell_executable) is None:
        warnings.append(f"PowerShell executable not found on PATH: {settings.powershell_executable}")
    else:
        info.append(f"PowerShell executable: {settings.powershell_executable}")

    temp_dir = Path(settings.resolved_temp_dir)
    if not temp_dir.exists():
        try:
            temp_dir.mkdir(parents=True, exist_ok=True)
            info.append(f"Created temp directory: {temp_dir}")
        except OSError as e:
            errors.append(f"Cannot create temp directory {temp_dir}: {e}")
    elif not os.access(temp_dir, os.W_OK):
        errors.append(f"Temp directory not writable: {temp_dir}")

    if settings.spool_directory and not Path(settings.spool_directory).is_absolute():
        errors.append(f"Spool directory must be absolute: {settings.spool_directory}")

    if not settings.pending_deletion_accessible:
        info.append("Printers in 'Pending Deletion' state will be treated as inaccessible")

    is_valid = len(errors) == 0

    if errors:
        logger.error("Settings validation FAILED", errors=errors, warnings=warnings)
    elif warnings:
        logger.warning("Settings validation succeeded with warnings", warnings=warnings)
    else:
        logger.info("Settings validation succeeded", info_count=len(info))

    return {
        "valid": is_valid,
        "errors": errors,
        "warnings": warnings,
        "info": info
    }
