"""
Workflow stage routes.

GOVERNANCE:
- Stage changes only through the state machine
- A rejected stage change is reported, never forced
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from api.dependencies import get_session_context
from api.models.workflow import WorkflowStatus
from engine import SessionContext, WorkflowEngine, get_engine

router = APIRouter(prefix="/v1/workflow", tags=["workflow"])


class AdvanceRequest(BaseModel):
    """Requested target stage (value or name)."""

    stage: str


class AdvanceResponse(BaseModel):
    success: bool
    status: WorkflowStatus


@router.get("/stats", response_model=dict[str, int])
def workflow_stats(
    context: SessionContext = Depends(get_session_context),
    engine: WorkflowEngine = Depends(get_engine),
):
    """Patient count per stage for the caller's clinic."""
    return engine.workflow_stats(context)


@router.get("/incomplete", response_model=list[WorkflowStatus])
def incomplete_assessments(
    context: SessionContext = Depends(get_session_context),
    engine: WorkflowEngine = Depends(get_engine),
):
    """Clinic workflows that have not reached treatment yet."""
    return engine.incomplete_assessments(context)


@router.post("/{patient_id}/start", response_model=WorkflowStatus)
def start_workflow(
    patient_id: str,
    context: SessionContext = Depends(get_session_context),
    engine: WorkflowEngine = Depends(get_engine),
):
    return engine.start_workflow(context, patient_id)


@router.get("/{patient_id}", response_model=WorkflowStatus)
def get_status(
    patient_id: str,
    context: SessionContext = Depends(get_session_context),
    engine: WorkflowEngine = Depends(get_engine),
):
    return engine.get_status(context, patient_id)


@router.post("/{patient_id}/advance", response_model=AdvanceResponse)
def advance_stage(
    patient_id: str,
    request: AdvanceRequest,
    context: SessionContext = Depends(get_session_context),
    engine: WorkflowEngine = Depends(get_engine),
):
    """
    Move the patient to another stage.

    Returns success=false (not an error status) when the stage is
    unrecognized or not reachable from the current one.
    """
    success = engine.advance_stage(context, patient_id, request.stage)
    return AdvanceResponse(success=success, status=engine.get_status(context, patient_id))
