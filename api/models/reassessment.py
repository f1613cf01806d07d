"""
Reassessment models.

GOVERNANCE:
- One open (scheduled) record per patient
- Closing a record schedules the next one when treatment continues
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from api.models.patient import utc_now


class ReassessmentStatus(str, Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"


class DomainChange(str, Enum):
    IMPROVED = "improvements"
    DECLINED = "declines"
    STABLE = "stable"


class DomainComparison(BaseModel):
    """Change in one domain between two snapshots (severity scale)."""

    domain: str
    label: str
    previous_score: float
    current_score: float
    change: float  # previous - current, positive = better
    percent_change: float


class ComparisonResult(BaseModel):
    """Domains grouped by direction plus the aggregate improvement."""

    improvements: list[DomainComparison] = Field(default_factory=list)
    declines: list[DomainComparison] = Field(default_factory=list)
    stable: list[DomainComparison] = Field(default_factory=list)
    overall_improvement: int = 0

    def classification_of(self, domain: str) -> Optional[DomainChange]:
        for change in DomainChange:
            if any(d.domain == domain for d in getattr(self, change.value)):
                return change
        return None


class ReassessmentRecord(BaseModel):
    """A scheduled or completed periodic reassessment."""

    record_id: str
    patient_id: str
    clinic_id: Optional[str] = None
    scheduled_date: datetime
    status: ReassessmentStatus = ReassessmentStatus.SCHEDULED
    reassessment_type: str = "30_day_followup"
    session_id: Optional[str] = None
    comparison_data: Optional[ComparisonResult] = None
    completed_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utc_now)


class Reminder(BaseModel):
    """A pending reminder ahead of a scheduled reassessment."""

    patient_id: str
    record_id: str
    reminder_date: datetime
    message: str
    reminder_type: str = "reassessment"
    status: str = "pending"


class ReassessmentDue(BaseModel):
    """A patient whose reassessment interval has elapsed."""

    patient_id: str
    clinic_id: Optional[str] = None
    last_assessment_at: datetime
    days_since_assessment: int
    days_overdue: int
