"""
Report models.

GOVERNANCE:
- Absolute contraindications set requires_clearance
- Rendering to PDF/HTML happens outside this service
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from api.models.assessment import CategoryScoreSet, Contraindication
from api.models.iris import ConstitutionalType, IrisSign, OrganAnalysis
from api.models.patient import utc_now
from api.models.therapy import TherapyRecommendation


class AssessmentReport(BaseModel):
    """Everything the clinician sees after both assessments."""

    patient_id: str
    clinic_id: Optional[str] = None
    session_id: str
    generated_at: datetime = Field(default_factory=utc_now)
    category_scores: CategoryScoreSet
    contraindications: list[Contraindication] = Field(default_factory=list)
    requires_clearance: bool = False
    constitutional_type: Optional[ConstitutionalType] = None
    organ_analysis: list[OrganAnalysis] = Field(default_factory=list)
    iris_signs: list[IrisSign] = Field(default_factory=list)
    recommendations: list[TherapyRecommendation] = Field(default_factory=list)
