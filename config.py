"""
Configuration for the Intake Workflow service.

CLINICAL THRESHOLDS:
- Scoring, matching and reassessment cut-offs live here, not in the engine
- Changing them changes clinical behaviour; keep defaults in step with the clinic
"""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    # API settings
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # Demo identity (used when the auth provider supplies none)
    demo_user_id: str = "demo_practitioner"
    demo_clinic_id: str = "demo_clinic"

    # Reassessment cycle
    reassessment_interval_days: int = 30
    reminder_days_before: list[int] = [5, 2, 0]

    # Contraindications
    minimum_patient_age: int = 12

    # Therapy matching (wellness scale, lower = worse)
    recommendation_threshold: int = 70
    severe_score_threshold: int = 30
    max_recommendations: int = 6

    # Reassessment decision (problem-severity scale, positive = better)
    completion_improvement_threshold: int = 30
    regression_threshold: int = -10
    stable_band: int = 10

    # Fixed appointment grid
    clinic_opening_time: str = "09:00"
    clinic_closing_time: str = "17:00"
    appointment_duration_minutes: int = 45

    # Record store (in-memory when store_url is unset)
    store_url: Optional[str] = None
    store_api_key: Optional[str] = None
    store_timeout_seconds: float = 5.0
    # Last-known records kept for reads while the store is unreachable
    record_cache_size: int = 2048

    # Notification dispatch (log-only when notification_url is unset)
    notification_url: Optional[str] = None
    notification_api_key: Optional[str] = None
    notification_timeout_seconds: float = 10.0

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None

    model_config = {"env_prefix": "INTAKE_WORKFLOW_"}


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
