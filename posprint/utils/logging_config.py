"""
Logging configuration for posprint.
Structured logging setup shared by every service and transport.
"""
import logging
import os
import sys
from typing import Optional
import structlog
from pathlib import Path


def setup_logging(log_level: Optional[str] = None, log_file: Optional[str] = None):
    """Set up structured logging for posprint.

    Args:
        log_level: Log level (debug, info, warning, error). If None, reads from POSPRINT_LOG_LEVEL env var.
        log_file: Optional path to log file.
    """

    if log_level is None:
        log_level = os.getenv("POSPRINT_LOG_LEVEL", "INFO")

    level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level
    )

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        ))

        logging.getLogger().addHandler(file_handler)

    # JSON for support logs, human-readable when debugging at the till
    if log_level.upper() == "DEBUG":
        processors.append(structlog.dev.ConsoleRenderer())
    else:
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )


def get_logger(name: Optional[str] = None) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def preview_payload(payload: bytes, limit: int = 48) -> str:
    """
    Render the head of a print payload for log lines.

    ESC/POS payloads are mostly control bytes, so non-printable bytes are
    shown as ``.`` and the preview is truncated to ``limit`` bytes.

    Example:
        >>> preview_payload(b"\\x1b@Hello\\n")
        '.@Hello.'
    """
    head = payload[:limit]
    text = "".join(chr(b) if 32 <= b < 127 else "." for b in head)
    if len(payload) > limit:
        text += f"... (+{len(payload) - limit} bytes)"
    return text
