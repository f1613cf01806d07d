"""
Assessment report and therapy matching routes.

GOVERNANCE:
- Recommendations are suggestions for the clinician
- requires_clearance blocks scheduling until cleared
"""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from api.dependencies import get_session_context
from api.models.assessment import CategoryScoreSet
from api.models.iris import ConstitutionalType
from api.models.report import AssessmentReport
from api.models.therapy import RecommendationView
from engine import SessionContext, WorkflowEngine, get_engine

router = APIRouter(prefix="/v1/reports", tags=["reports"])


class TherapyMatchRequest(BaseModel):
    category_scores: CategoryScoreSet
    constitutional_type: Optional[ConstitutionalType] = None
    iris_domains: list[str] = []


@router.post("/therapy-match", response_model=list[RecommendationView])
def match_therapies(
    request: TherapyMatchRequest, engine: WorkflowEngine = Depends(get_engine)
):
    """Rank therapies for a score set without touching any workflow."""
    recommendations = engine.match_therapies(
        request.category_scores, request.constitutional_type, request.iris_domains
    )
    return [RecommendationView.from_recommendation(r) for r in recommendations]


@router.post("/{patient_id}", response_model=AssessmentReport)
def generate_report(
    patient_id: str,
    context: SessionContext = Depends(get_session_context),
    engine: WorkflowEngine = Depends(get_engine),
):
    """Build the report from the latest completed health assessment."""
    return engine.generate_report(context, patient_id)
