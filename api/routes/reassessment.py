"""
Reassessment cycle routes.

GOVERNANCE:
- One open reassessment per patient
- The completion decision follows the configured thresholds only
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from api.dependencies import get_session_context
from api.models.assessment import AssessmentSession
from api.models.reassessment import ComparisonResult, ReassessmentDue, ReassessmentRecord
from engine import ReassessmentOutcome, SessionContext, WorkflowEngine, get_engine

router = APIRouter(prefix="/v1/reassessments", tags=["reassessments"])


class CompareRequest(BaseModel):
    """Two problem-severity snapshots (higher = worse)."""

    previous: Optional[dict[str, float]] = None
    current: Optional[dict[str, float]] = None


class TriggerResponse(BaseModel):
    triggered: list[str]


class ScheduleRequest(BaseModel):
    scheduled_date: Optional[datetime] = None


class CompleteRequest(BaseModel):
    session_id: str


@router.get("/due", response_model=list[ReassessmentDue])
def reassessments_due(
    context: SessionContext = Depends(get_session_context),
    engine: WorkflowEngine = Depends(get_engine),
):
    """Patients in treatment whose reassessment interval has elapsed."""
    return engine.reassessments_due(context)


@router.post("/trigger", response_model=TriggerResponse)
def trigger_due(
    context: SessionContext = Depends(get_session_context),
    engine: WorkflowEngine = Depends(get_engine),
):
    return TriggerResponse(triggered=engine.trigger_due_reassessments(context))


@router.post("/compare", response_model=Optional[ComparisonResult])
def compare(request: CompareRequest, engine: WorkflowEngine = Depends(get_engine)):
    """Diff two snapshots; null when either is missing."""
    return engine.comparator.compare(request.previous, request.current)


@router.post("/{patient_id}/schedule", response_model=ReassessmentRecord)
def schedule(
    patient_id: str,
    request: ScheduleRequest,
    context: SessionContext = Depends(get_session_context),
    engine: WorkflowEngine = Depends(get_engine),
):
    return engine.schedule_reassessment(context, patient_id, request.scheduled_date)


@router.post("/{patient_id}/start", response_model=AssessmentSession)
def start(
    patient_id: str,
    context: SessionContext = Depends(get_session_context),
    engine: WorkflowEngine = Depends(get_engine),
):
    """Open a reassessment questionnaire for a patient in treatment."""
    return engine.start_reassessment(context, patient_id)


@router.post("/{patient_id}/complete", response_model=ReassessmentOutcome)
def complete(
    patient_id: str,
    request: CompleteRequest,
    context: SessionContext = Depends(get_session_context),
    engine: WorkflowEngine = Depends(get_engine),
):
    """Compare with the previous assessment and decide the next stage."""
    return engine.complete_reassessment(context, patient_id, request.session_id)
