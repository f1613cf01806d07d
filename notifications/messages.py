"""Message builders for patient-facing notifications."""

from api.models.patient import Patient
from api.models.reassessment import ReassessmentRecord
from api.models.treatment import TreatmentPlan
from notifications.dispatcher import NotificationMessage

FOOTER = (
    '<p style="font-size: 12px; color: #6b7280;">'
    "This email contains confidential medical information. "
    "Please do not share without authorization.</p>"
)


def treatment_schedule_message(patient: Patient, plan: TreatmentPlan) -> NotificationMessage:
    """Schedule confirmation sent once the treatment plan is booked."""
    rows = "".join(
        f"<tr><td>{a.appointment_date}</td><td>{a.appointment_time[:5]}</td>"
        f"<td>{a.therapy_code or a.appointment_type}</td></tr>"
        for a in sorted(plan.appointments, key=lambda a: (a.appointment_date, a.appointment_time))
    )
    html = (
        f"<p>Dear {patient.full_name or 'patient'},</p>"
        f"<p>Your treatment plan has been confirmed with "
        f"{len(plan.appointments)} appointment(s):</p>"
        f"<table><tr><th>Date</th><th>Time</th><th>Therapy</th></tr>{rows}</table>"
        f"{FOOTER}"
    )
    return NotificationMessage(
        to=patient.email or "",
        subject="Your Treatment Schedule",
        html=html,
        patient_id=patient.patient_id,
        clinic_id=patient.clinic_id,
        kind="treatment_schedule",
    )


def reassessment_scheduled_message(
    patient: Patient, record: ReassessmentRecord
) -> NotificationMessage:
    when = record.scheduled_date.strftime("%A %d %B %Y at %H:%M")
    html = (
        f"<p>Dear {patient.full_name or 'patient'},</p>"
        f"<p>Your next progress reassessment is booked for {when}.</p>"
        f"{FOOTER}"
    )
    return NotificationMessage(
        to=patient.email or "",
        subject="Your Reassessment Appointment",
        html=html,
        patient_id=patient.patient_id,
        clinic_id=patient.clinic_id,
        kind="reassessment_scheduled",
    )
