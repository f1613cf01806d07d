"""
Core Package - Logging and Exception Handling
"""
from .logging import get_audit_logger, get_logger, setup_logging
from .exceptions import (
    WorkflowEngineError,
    ValidationError,
    TransientStorageError,
    DataIntegrityError,
    NotificationError,
    RecordNotFoundError,
)

__all__ = [
    "get_logger",
    "get_audit_logger",
    "setup_logging",
    "WorkflowEngineError",
    "ValidationError",
    "TransientStorageError",
    "DataIntegrityError",
    "NotificationError",
    "RecordNotFoundError",
]
