"""Identity of the caller, passed explicitly to every mutating engine call."""

from dataclasses import dataclass


@dataclass(frozen=True)
class SessionContext:
    """Who is acting, and for which clinic."""

    user_id: str
    clinic_id: str
