"""
Appointment grid and reassessment scheduling.

Slots are a fixed grid between opening and closing time on weekdays. Only
the reassessment scheduler drives slot selection here.
"""

import re
from datetime import date, datetime, time, timedelta
from typing import Iterable, Optional

from api.models.treatment import Appointment, AppointmentSlot

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
TIME_PATTERN = re.compile(r"^\d{2}:\d{2}(:\d{2})?$")
REQUIRED_FIELDS = (
    "patient_id",
    "clinic_id",
    "appointment_date",
    "appointment_time",
    "appointment_type",
)
SEARCH_HORIZON_DAYS = 14


def _minutes(hhmm: str) -> int:
    hours, minutes = hhmm.split(":")[:2]
    return int(hours) * 60 + int(minutes)


def _normalise_time(value: str) -> str:
    return value if len(value) == 8 else f"{value[:5]}:00"


def day_slots(
    day: date,
    opening: str,
    closing: str,
    duration_minutes: int,
    booked: Iterable[Appointment] = (),
) -> list[AppointmentSlot]:
    """Free slots for one day; weekends have none."""
    if day.weekday() >= 5:
        return []

    day_str = day.isoformat()
    taken = {
        _normalise_time(a.appointment_time)
        for a in booked
        if a.appointment_date == day_str and a.status == "scheduled"
    }

    slots = []
    start, end = _minutes(opening), _minutes(closing)
    for minute in range(start, end - duration_minutes + 1, duration_minutes):
        time_str = f"{minute // 60:02d}:{minute % 60:02d}:00"
        if time_str not in taken:
            slots.append(AppointmentSlot(date=day_str, time=time_str))
    return slots


def available_slots(
    start: date,
    end: date,
    opening: str,
    closing: str,
    duration_minutes: int,
    booked: Iterable[Appointment] = (),
) -> list[AppointmentSlot]:
    booked = list(booked)
    slots = []
    day = start
    while day <= end:
        slots.extend(day_slots(day, opening, closing, duration_minutes, booked))
        day += timedelta(days=1)
    return slots


def first_free_slot(
    target: datetime,
    opening: str,
    closing: str,
    duration_minutes: int,
    booked: Iterable[Appointment] = (),
) -> Optional[datetime]:
    """Earliest free grid slot on or after the target day."""
    start = target.date()
    slots = available_slots(
        start,
        start + timedelta(days=SEARCH_HORIZON_DAYS),
        opening,
        closing,
        duration_minutes,
        booked,
    )
    if not slots:
        return None
    slot = slots[0]
    slot_time = time.fromisoformat(slot.time)
    return datetime.combine(date.fromisoformat(slot.date), slot_time, tzinfo=target.tzinfo)


def reminder_dates(scheduled: datetime, days_before: Iterable[int]) -> list[tuple[int, datetime]]:
    return [(days, scheduled - timedelta(days=days)) for days in days_before]


def validate_appointments(appointments: list[Appointment]) -> list[str]:
    """Human-readable problems, one per missing or malformed field."""
    errors = []
    for index, appointment in enumerate(appointments, start=1):
        for field in REQUIRED_FIELDS:
            if not getattr(appointment, field):
                errors.append(f"Appointment {index} missing {field}")
        if appointment.appointment_date and not DATE_PATTERN.match(appointment.appointment_date):
            errors.append(f"Appointment {index} has invalid date format")
        if appointment.appointment_time and not TIME_PATTERN.match(appointment.appointment_time):
            errors.append(f"Appointment {index} has invalid time format")
    return errors


def find_conflicts(
    requested: Iterable[Appointment], booked: Iterable[Appointment]
) -> list[Appointment]:
    """Already-booked appointments that occupy a requested date and time."""
    occupied = {
        (a.appointment_date, _normalise_time(a.appointment_time)): a
        for a in booked
        if a.status == "scheduled"
    }
    conflicts = []
    for appointment in requested:
        key = (appointment.appointment_date, _normalise_time(appointment.appointment_time))
        if key in occupied:
            conflicts.append(occupied[key])
    return conflicts
