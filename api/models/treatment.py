"""
Treatment plan and appointment models.

GOVERNANCE:
- A plan cannot be scheduled while clearance is outstanding
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from api.models.patient import utc_now


class Appointment(BaseModel):
    """A single treatment or reassessment appointment."""

    patient_id: str = ""
    clinic_id: str = ""
    appointment_date: str = ""  # YYYY-MM-DD
    appointment_time: str = ""  # HH:MM[:SS]
    appointment_type: str = ""
    therapy_code: Optional[str] = None
    duration_minutes: int = 45
    status: str = "scheduled"


class AppointmentSlot(BaseModel):
    date: str
    time: str
    available: bool = True


class TreatmentPlan(BaseModel):
    """Therapies chosen from the report plus their appointments."""

    plan_id: Optional[str] = None
    patient_id: str
    clinic_id: Optional[str] = None
    therapy_codes: list[str] = Field(default_factory=list)
    appointments: list[Appointment] = Field(default_factory=list)
    notes: Optional[str] = None
    status: str = "active"
    created_at: datetime = Field(default_factory=utc_now)


class ConfirmationSteps(BaseModel):
    plan_saved: bool = False
    appointments_created: bool = False
    appointment_count: int = 0
    notification_sent: bool = False
    workflow_updated: bool = False
    reassessment_scheduled: bool = False
    conflicts: list[Appointment] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)


class ConfirmationResult(BaseModel):
    success: bool
    plan_id: Optional[str] = None
    steps: ConfirmationSteps
