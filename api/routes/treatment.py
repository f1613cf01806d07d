"""
Treatment plan routes.

GOVERNANCE:
- No scheduling while clinical clearance is outstanding
- Conflicts are reported to the clinician, not silently resolved
"""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from api.dependencies import get_session_context
from api.models.treatment import Appointment, ConfirmationResult, TreatmentPlan
from engine import SessionContext, WorkflowEngine, get_engine

router = APIRouter(prefix="/v1/treatment", tags=["treatment"])


class ConfirmPlanRequest(BaseModel):
    patient_id: str
    therapy_codes: list[str] = []
    appointments: list[Appointment] = []
    notes: Optional[str] = None


@router.post("/plans", response_model=ConfirmationResult)
def confirm_plan(
    request: ConfirmPlanRequest,
    context: SessionContext = Depends(get_session_context),
    engine: WorkflowEngine = Depends(get_engine),
):
    """Confirm a treatment plan, book its appointments and start treatment."""
    plan = TreatmentPlan(
        patient_id=request.patient_id,
        clinic_id=context.clinic_id,
        therapy_codes=request.therapy_codes,
        appointments=request.appointments,
        notes=request.notes,
    )
    return engine.confirm_treatment_plan(context, plan)
