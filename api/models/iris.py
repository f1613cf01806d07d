"""
Iris assessment models.

GOVERNANCE:
- One finding per assessment, keyed by patient
- Image capture and storage are handled elsewhere
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from api.models.patient import utc_now


class ConstitutionalType(str, Enum):
    """Constitutional classification from the iris pattern."""

    LYMPHATIC = "lymphatic"
    HAEMATOGENIC = "haematogenic"
    BILIARY = "biliary"
    MIXED = "mixed"
    NEUROGENIC = "neurogenic"
    POLYGLANDULAR = "polyglandular"
    CONNECTIVE_TISSUE = "connective_tissue"


class FiberDensity(str, Enum):
    TIGHT = "tight"
    MEDIUM = "medium"
    LOOSE = "loose"
    VERY_LOOSE = "very_loose"


class PupilSize(str, Enum):
    NORMAL = "normal"
    MIOTIC = "miotic"  # Small
    MYDRIATIC = "mydriatic"  # Large
    IRREGULAR = "irregular"


class SignIntensity(str, Enum):
    NONE = "none"
    MILD = "mild"
    MODERATE = "moderate"
    SEVERE = "severe"


class LacunaeCount(str, Enum):
    NONE = "none"
    FEW = "few"
    MANY = "many"


class FindingSeverity(str, Enum):
    MILD = "mild"
    MODERATE = "moderate"
    SEVERE = "severe"


class IrisFinding(BaseModel):
    """Constitutional type plus qualitative iris signs."""

    patient_id: str
    clinic_id: Optional[str] = None
    constitutional_type: ConstitutionalType
    fiber_density: FiberDensity
    pupil_size: PupilSize = PupilSize.NORMAL
    collarette_position: str = "central"
    stress_rings: SignIntensity = SignIntensity.NONE
    lacunae: LacunaeCount = LacunaeCount.NONE
    clinical_notes: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)


class OrganAnalysis(BaseModel):
    """Organ-system reading derived from an iris finding."""

    organ: str
    findings: list[str]
    severity: FindingSeverity
    location: str
    domain: Optional[str] = None  # Therapy search domain


class IrisSign(BaseModel):
    sign: str
    description: str
    significance: str
