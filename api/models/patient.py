"""
Patient models.

GOVERNANCE:
- Patients are owned by a clinic
- Only demographic corrections after creation
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Patient(BaseModel):
    """A registered patient."""

    patient_id: str = Field(..., min_length=1)
    clinic_id: str = Field(..., min_length=1)
    first_name: str = ""
    last_name: str = ""
    age: int = Field(..., ge=0, le=130)
    gender: Optional[str] = None
    email: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
