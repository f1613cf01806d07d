"""
Record store interface.

GOVERNANCE:
- No transactions assumed
- Every backend raises TransientStorageError when it cannot answer
- Rows are validated into entity models at this boundary
"""

from abc import ABC, abstractmethod
from typing import Any, Iterable, Optional, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from core import get_logger

logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class Tables:
    """Table names shared by every backend."""

    PATIENTS = "patients"
    WORKFLOW_STATUS = "workflow_status"
    WORKFLOW_TRANSITIONS = "workflow_transitions"
    QUESTIONS = "assessment_questions"
    SESSIONS = "assessment_sessions"
    RESPONSES = "assessment_responses"
    IRIS_ASSESSMENTS = "iris_assessments"
    RECOMMENDATIONS = "therapy_recommendations"
    TREATMENT_PLANS = "treatment_plans"
    APPOINTMENTS = "appointments"
    REASSESSMENTS = "reassessments"
    REMINDERS = "reminders"
    NOTIFICATION_LOG = "notification_log"


# Upsert key per table; tables not listed are append-only.
RECORD_KEYS = {
    Tables.PATIENTS: "patient_id",
    Tables.WORKFLOW_STATUS: "patient_id",
    Tables.SESSIONS: "session_id",
    Tables.TREATMENT_PLANS: "plan_id",
    Tables.REASSESSMENTS: "record_id",
}


class RecordStore(ABC):
    """Key/record store with insert, upsert, update and select-by-key."""

    @property
    @abstractmethod
    def connected(self) -> bool:
        """Whether the last interaction with the backend succeeded."""

    @abstractmethod
    def insert(self, table: str, record: dict[str, Any]) -> dict[str, Any]:
        """Insert a record and return it as stored."""

    @abstractmethod
    def upsert(self, table: str, record: dict[str, Any], key: str) -> dict[str, Any]:
        """Insert or replace the record whose ``key`` column matches."""

    @abstractmethod
    def update(
        self, table: str, values: dict[str, Any], match: dict[str, Any]
    ) -> list[dict[str, Any]]:
        """Apply ``values`` to every record matching ``match``."""

    @abstractmethod
    def select(
        self,
        table: str,
        match: Optional[dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        """Return records whose columns equal every value in ``match``."""

    def select_one(self, table: str, match: dict[str, Any]) -> Optional[dict[str, Any]]:
        rows = self.select(table, match, limit=1)
        return rows[0] if rows else None


def to_record(model: BaseModel) -> dict[str, Any]:
    """Serialise an entity into a JSON-shaped row."""
    return model.model_dump(mode="json")


def parse_record(model: Type[ModelT], row: dict[str, Any]) -> Optional[ModelT]:
    """Validate a stored row, logging and returning None if malformed."""
    try:
        return model.model_validate(row)
    except PydanticValidationError as e:
        logger.warning(
            f"Dropping malformed {model.__name__} record: {e.error_count()} error(s)"
        )
        return None


def parse_records(model: Type[ModelT], rows: Iterable[dict[str, Any]]) -> list[ModelT]:
    parsed = (parse_record(model, row) for row in rows)
    return [item for item in parsed if item is not None]
