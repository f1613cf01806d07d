"""
Iris assessment routes.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from api.dependencies import get_session_context
from api.models.iris import (
    ConstitutionalType,
    FiberDensity,
    IrisFinding,
    IrisSign,
    LacunaeCount,
    OrganAnalysis,
    PupilSize,
    SignIntensity,
)
from engine import SessionContext, WorkflowEngine, get_engine, iris

router = APIRouter(prefix="/v1/iris", tags=["iris"])


class IrisFindingRequest(BaseModel):
    patient_id: str
    constitutional_type: ConstitutionalType
    fiber_density: FiberDensity
    pupil_size: PupilSize = PupilSize.NORMAL
    collarette_position: str = "central"
    stress_rings: SignIntensity = SignIntensity.NONE
    lacunae: LacunaeCount = LacunaeCount.NONE
    clinical_notes: Optional[str] = None


class IrisFindingResponse(BaseModel):
    finding: IrisFinding
    organ_analysis: list[OrganAnalysis]
    iris_signs: list[IrisSign]


@router.post("", response_model=IrisFindingResponse)
def record_finding(
    request: IrisFindingRequest,
    context: SessionContext = Depends(get_session_context),
    engine: WorkflowEngine = Depends(get_engine),
):
    """Store an iris finding and return its normalised analysis."""
    finding = engine.record_iris_finding(
        context, IrisFinding(clinic_id=context.clinic_id, **request.model_dump())
    )
    return IrisFindingResponse(
        finding=finding,
        organ_analysis=iris.organ_analysis(finding),
        iris_signs=iris.iris_signs(finding),
    )
