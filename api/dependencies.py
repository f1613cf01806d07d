"""
Request-scoped dependencies.

GOVERNANCE:
- Identity comes from the auth provider headers
- Demo identity only when the provider supplies none
"""

from typing import Optional

from fastapi import Header

from config import get_settings
from engine import SessionContext


def get_session_context(
    x_user_id: Optional[str] = Header(default=None),
    x_clinic_id: Optional[str] = Header(default=None),
) -> SessionContext:
    """Build the caller's SessionContext from X-User-Id / X-Clinic-Id."""
    settings = get_settings()
    return SessionContext(
        user_id=x_user_id or settings.demo_user_id,
        clinic_id=x_clinic_id or settings.demo_clinic_id,
    )
