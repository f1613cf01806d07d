"""
Logging Configuration

One structured line per record. The ``audit`` logger is the sink for stage
transitions, rejected writes, storage fallbacks and failed notifications.
"""
import logging
import sys
from datetime import datetime, timezone
from typing import Optional

AUDIT_LOGGER_NAME = "intake_workflow.audit"


class StructuredFormatter(logging.Formatter):
    """Single-line formatter: timestamp, level, logger, message, extras."""

    AUDIT_FIELDS = ("patient_id", "clinic_id", "user_id", "event")

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created, timezone.utc).isoformat()

        log_message = (
            f"[{timestamp}] "
            f"{record.levelname:8} "
            f"[{record.name}] "
            f"{record.getMessage()}"
        )

        extras = [
            f"{name}={getattr(record, name)}"
            for name in self.AUDIT_FIELDS
            if getattr(record, name, None) is not None
        ]
        if extras:
            log_message += " | " + " ".join(extras)

        if record.exc_info:
            log_message += f"\n{self.formatException(record.exc_info)}"

        return log_message


def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """
    Configure application-wide logging.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional file path for log output
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(StructuredFormatter())
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(StructuredFormatter())
        root_logger.addHandler(file_handler)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Args:
        name: Module name (typically __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


def get_audit_logger() -> logging.Logger:
    """Logger that receives workflow audit events."""
    return logging.getLogger(AUDIT_LOGGER_NAME)
