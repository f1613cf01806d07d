"""
Therapy models.

GOVERNANCE:
- Recommendations are generated, never hand-edited
- At most six per session, unique by code
"""

from enum import IntEnum
from typing import Optional

from pydantic import BaseModel, Field


class TherapyPriority(IntEnum):
    """Lower value = higher priority."""

    MANDATORY = 1
    RECOMMENDED = 2
    OPTIONAL = 3

    @property
    def label(self) -> str:
        return PRIORITY_LABELS[self]

    def escalated(self) -> "TherapyPriority":
        """One level more urgent, never above MANDATORY."""
        return TherapyPriority(max(TherapyPriority.MANDATORY, self - 1))


PRIORITY_LABELS = {
    TherapyPriority.MANDATORY: "MANDATORY-PRIMARY",
    TherapyPriority.RECOMMENDED: "RECOMMENDED-SECONDARY",
    TherapyPriority.OPTIONAL: "OPTIONAL-SUPPORTIVE",
}


class TherapyProtocol(BaseModel):
    """Catalogue entry for a deliverable therapy."""

    code: str
    name: str
    category: str
    targets: tuple[str, ...]
    duration_minutes: int
    base_priority: TherapyPriority


class ProtocolSchedule(BaseModel):
    """Default delivery schedule for a recommended therapy."""

    frequency: str = "2-3 times per week"
    session_minutes: int
    total_sessions: int = 10
    notes: str = "Monitor patient response and adjust as needed"


class TherapyRecommendation(BaseModel):
    """A therapy selected for a patient."""

    code: str
    name: str
    category: str
    priority: TherapyPriority
    description: str = ""
    duration_minutes: int = 0
    target_domain: Optional[str] = None
    protocol: Optional[ProtocolSchedule] = None

    @property
    def priority_label(self) -> str:
        return self.priority.label


class SessionRecommendation(TherapyRecommendation):
    """A recommendation as stored against the session it was matched for."""

    patient_id: str
    session_id: str
    position: int = 0

    def as_recommendation(self) -> TherapyRecommendation:
        return TherapyRecommendation.model_validate(
            self.model_dump(exclude={"patient_id", "session_id", "position"})
        )


class RecommendationView(BaseModel):
    """Recommendation as returned over the API (with the label)."""

    code: str
    name: str
    category: str
    priority: int = Field(..., ge=1, le=3)
    priority_label: str
    description: str
    duration_minutes: int
    target_domain: Optional[str] = None
    protocol: Optional[ProtocolSchedule] = None

    @classmethod
    def from_recommendation(cls, rec: TherapyRecommendation) -> "RecommendationView":
        return cls(
            code=rec.code,
            name=rec.name,
            category=rec.category,
            priority=int(rec.priority),
            priority_label=rec.priority_label,
            description=rec.description,
            duration_minutes=rec.duration_minutes,
            target_domain=rec.target_domain,
            protocol=rec.protocol,
        )
