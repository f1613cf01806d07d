"""
Workflow models.

GOVERNANCE:
- One workflow status per patient, never deleted
- Stage values outside WorkflowStage are never persisted
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from api.models.patient import utc_now


class WorkflowStage(str, Enum):
    """Stages of the patient journey, in forward order."""

    REGISTERED = "registered"
    HEALTH_ASSESSMENT = "health_assessment"
    IRIS_ASSESSMENT = "iris_assessment"
    REPORT_GENERATION = "report_generation"
    TREATMENT_PLANNING = "treatment_planning"
    TREATMENT_SCHEDULING = "treatment_scheduling"
    IN_TREATMENT = "in_treatment"
    REASSESSMENT = "reassessment"
    COMPLETED = "completed"  # Terminal
    MAINTENANCE = "maintenance"  # Terminal

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STAGES

    @classmethod
    def parse(cls, value: "str | WorkflowStage") -> Optional["WorkflowStage"]:
        """Resolve a stage by value or member name, None if unrecognized."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        normalized = value.strip().lower()
        for stage in cls:
            if normalized in (stage.value, stage.name.lower()):
                return stage
        return None


TERMINAL_STAGES = frozenset({WorkflowStage.COMPLETED, WorkflowStage.MAINTENANCE})


def empty_completion_flags() -> dict[WorkflowStage, bool]:
    return {stage: False for stage in WorkflowStage}


class WorkflowStatus(BaseModel):
    """Current position of a patient in the workflow."""

    patient_id: str
    clinic_id: Optional[str] = None
    current_stage: WorkflowStage = WorkflowStage.REGISTERED
    updated_at: datetime = Field(default_factory=utc_now)
    completed_stages: dict[WorkflowStage, bool] = Field(
        default_factory=empty_completion_flags
    )
    stage_data: dict[str, Any] = Field(default_factory=dict)
    last_assessment_at: Optional[datetime] = None
    last_reassessment_at: Optional[datetime] = None

    def is_completed(self, stage: WorkflowStage) -> bool:
        return self.completed_stages.get(stage, False)


class StageTransition(BaseModel):
    """Audit record of a single stage change."""

    patient_id: str
    from_stage: WorkflowStage
    to_stage: WorkflowStage
    action: str
    performed_by: Optional[str] = None
    clinic_id: Optional[str] = None
    occurred_at: datetime = Field(default_factory=utc_now)
