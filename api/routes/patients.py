"""
Patient registration routes.

GOVERNANCE:
- Patients are registered into the caller's clinic
- Registration always opens a workflow
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from api.dependencies import get_session_context
from api.models.patient import Patient
from api.models.workflow import WorkflowStatus
from engine import SessionContext, WorkflowEngine, get_engine

router = APIRouter(prefix="/v1/patients", tags=["patients"])


class RegisterPatientRequest(BaseModel):
    """New patient demographics."""

    patient_id: Optional[str] = None
    first_name: str = ""
    last_name: str = ""
    age: int = Field(..., ge=0, le=130)
    gender: Optional[str] = None
    email: Optional[str] = None


class RegisterPatientResponse(BaseModel):
    patient: Patient
    workflow: WorkflowStatus


@router.post("", response_model=RegisterPatientResponse)
def register_patient(
    request: RegisterPatientRequest,
    context: SessionContext = Depends(get_session_context),
    engine: WorkflowEngine = Depends(get_engine),
):
    """Register a patient and start their workflow at REGISTERED."""
    patient = Patient(
        patient_id=request.patient_id or str(uuid.uuid4()),
        clinic_id=context.clinic_id,
        first_name=request.first_name,
        last_name=request.last_name,
        age=request.age,
        gender=request.gender,
        email=request.email,
    )
    workflow = engine.register_patient(context, patient)
    return RegisterPatientResponse(patient=patient, workflow=workflow)


@router.get("/{patient_id}", response_model=Patient)
def get_patient(
    patient_id: str,
    context: SessionContext = Depends(get_session_context),
    engine: WorkflowEngine = Depends(get_engine),
):
    """A patient of the caller's clinic; 404 for anyone else's."""
    return engine.get_patient(context, patient_id)
