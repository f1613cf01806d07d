"""
Assessment models.

GOVERNANCE:
- Responses are immutable once saved; a re-answer is a new response
- Category percentages always within [0, 100]
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from api.models.patient import utc_now


class AssessmentCategory(str, Enum):
    """The five fixed assessment domains, in declaration order."""

    PHYSICAL = "physical"
    MENTAL = "mental"
    LIFESTYLE = "lifestyle"
    ENVIRONMENT = "environment"
    HISTORY = "history"


class AssessmentMode(str, Enum):
    """Why a questionnaire session was opened."""

    INITIAL = "initial"
    REASSESSMENT = "reassessment"


class Question(BaseModel):
    """A questionnaire item (static reference data)."""

    question_id: str = Field(..., min_length=1)
    text: str
    category: AssessmentCategory
    weight: float = Field(1.0, gt=0)
    order_position: int = 0
    options: Optional[dict[str, str]] = None  # letter -> label


class Response(BaseModel):
    """A single answer to a question within a session."""

    session_id: str
    question_id: str
    letter: str
    score: int = Field(..., ge=1, le=5)
    free_text: Optional[str] = None
    recorded_at: datetime = Field(default_factory=utc_now)

    model_config = {"frozen": True}


class CategoryScoreSet(BaseModel):
    """Per-category wellness percentages (higher = better)."""

    categories: dict[AssessmentCategory, int] = Field(default_factory=dict)
    overall_score: int = 0
    answered_counts: dict[AssessmentCategory, int] = Field(default_factory=dict)

    @field_validator("categories")
    @classmethod
    def validate_percentages(
        cls, v: dict[AssessmentCategory, int]
    ) -> dict[AssessmentCategory, int]:
        """Percentages must stay inside [0, 100]."""
        for category, score in v.items():
            if not 0 <= score <= 100:
                raise ValueError(f"{category.value} score {score} outside [0, 100]")
        return v

    def score_for(self, category: AssessmentCategory) -> int:
        return self.categories.get(category, 0)

    def is_scored(self, category: AssessmentCategory) -> bool:
        """True when at least one question in the category was answered."""
        if self.answered_counts:
            return self.answered_counts.get(category, 0) > 0
        # Any answered category scores at least 20, so zero means unanswered.
        return self.score_for(category) > 0


class ContraindicationSeverity(str, Enum):
    """Absolute contraindications gate therapy; relative ones are advisory."""

    ABSOLUTE = "absolute"
    RELATIVE = "relative"


class Contraindication(BaseModel):
    """A condition restricting or gating therapy."""

    severity: ContraindicationSeverity
    condition: str
    reason: str
    question_id: Optional[str] = None  # Set for response-derived entries


class AssessmentSession(BaseModel):
    """A questionnaire session and its derived results."""

    session_id: str
    patient_id: str
    clinic_id: Optional[str] = None
    mode: AssessmentMode = AssessmentMode.INITIAL
    created_at: datetime = Field(default_factory=utc_now)
    completed_at: Optional[datetime] = None
    category_scores: Optional[CategoryScoreSet] = None
    contraindications: list[Contraindication] = Field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        return self.completed_at is not None
