"""
Exception Hierarchy

Every error the engine raises carries a stable code and a details dict so the
API layer can turn it into a structured response without inspecting types.
"""
from typing import Any, Dict, Optional


class WorkflowEngineError(Exception):
    """Base exception for all intake workflow errors."""

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details
        }


class ValidationError(WorkflowEngineError):
    """Malformed input rejected at the boundary."""

    def __init__(
        self,
        message: str,
        field: str = "unknown",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            code="VALIDATION_ERROR",
            details={"field": field, **(details or {})}
        )
        self.field = field


class TransientStorageError(WorkflowEngineError):
    """The record store is unreachable or failed to answer in time."""

    def __init__(
        self,
        message: str,
        table: str = "unknown",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            code="STORAGE_UNAVAILABLE",
            details={"table": table, **(details or {})}
        )
        self.table = table


class DataIntegrityError(WorkflowEngineError):
    """A write or record that would break an entity invariant."""

    def __init__(
        self,
        message: str,
        entity: str = "unknown",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            code="DATA_INTEGRITY_ERROR",
            details={"entity": entity, **(details or {})}
        )
        self.entity = entity


class NotificationError(WorkflowEngineError):
    """Outbound notification could not be delivered."""

    def __init__(
        self,
        message: str,
        channel: str = "email",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            code="NOTIFICATION_ERROR",
            details={"channel": channel, **(details or {})}
        )
        self.channel = channel


class RecordNotFoundError(WorkflowEngineError):
    """A patient, session or record id that the engine does not know."""

    def __init__(
        self,
        message: str,
        entity: str = "unknown",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            code="NOT_FOUND",
            details={"entity": entity, **(details or {})}
        )
        self.entity = entity
