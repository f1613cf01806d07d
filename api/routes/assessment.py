"""
Health assessment routes.

GOVERNANCE:
- Scores and contraindications are for the clinician's report
- Latest answer per question wins
"""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from api.dependencies import get_session_context
from api.models.assessment import (
    AssessmentMode,
    AssessmentSession,
    CategoryScoreSet,
    Contraindication,
    Question,
    Response,
)
from engine import SessionContext, WorkflowEngine, get_engine

router = APIRouter(prefix="/v1/assessments", tags=["assessments"])


class StartAssessmentRequest(BaseModel):
    patient_id: str
    mode: AssessmentMode = AssessmentMode.INITIAL


class RecordResponseRequest(BaseModel):
    """One answer, as the option letter a-e."""

    question_id: str
    answer: str = Field(..., min_length=1)
    text: Optional[str] = None


class ScoresResponse(BaseModel):
    session_id: str
    category_scores: CategoryScoreSet
    contraindications: list[Contraindication]


@router.get("/questions", response_model=list[Question])
def list_questions(engine: WorkflowEngine = Depends(get_engine)):
    return engine.question_list()


@router.post("", response_model=AssessmentSession)
def start_assessment(
    request: StartAssessmentRequest,
    context: SessionContext = Depends(get_session_context),
    engine: WorkflowEngine = Depends(get_engine),
):
    """Open a questionnaire session."""
    return engine.start_assessment(context, request.patient_id, request.mode)


@router.post("/{session_id}/responses", response_model=Response)
def record_response(
    session_id: str,
    request: RecordResponseRequest,
    context: SessionContext = Depends(get_session_context),
    engine: WorkflowEngine = Depends(get_engine),
):
    """Record an answer. Unknown questions are rejected with 409."""
    return engine.record_response(
        context, session_id, request.question_id, request.answer, request.text
    )


@router.get("/{session_id}/scores", response_model=ScoresResponse)
def get_scores(
    session_id: str,
    context: SessionContext = Depends(get_session_context),
    engine: WorkflowEngine = Depends(get_engine),
):
    """Current scores and contraindications, without completing the session."""
    return ScoresResponse(
        session_id=session_id,
        category_scores=engine.compute_scores(context, session_id),
        contraindications=engine.detect_contraindications(context, session_id),
    )


@router.post("/{session_id}/complete", response_model=AssessmentSession)
def complete_assessment(
    session_id: str,
    context: SessionContext = Depends(get_session_context),
    engine: WorkflowEngine = Depends(get_engine),
):
    """Score the session and move the patient on to the iris stage."""
    return engine.complete_health_assessment(context, session_id)
