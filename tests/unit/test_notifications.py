"""
Unit Tests for Notification Dispatch

send() is fire-and-forget: failures are logged and reported as False.
"""
import json
from datetime import datetime, timezone

import httpx

from api.models.patient import Patient
from api.models.reassessment import ReassessmentRecord
from api.models.treatment import Appointment, TreatmentPlan
from notifications import (
    HttpNotificationDispatcher,
    LoggingNotificationDispatcher,
    NotificationMessage,
)
from notifications.messages import (
    reassessment_scheduled_message,
    treatment_schedule_message,
)

MESSAGE = NotificationMessage(to="ada@example.com", subject="Hello", html="<p>Hi</p>")


def http_dispatcher(handler):
    return HttpNotificationDispatcher(
        "https://mail.example.com/send", "key", transport=httpx.MockTransport(handler)
    )


class TestHttpDispatcher:
    def test_posts_message(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = json.loads(request.content)
            seen["auth"] = request.headers["authorization"]
            return httpx.Response(200, json={"success": True})

        assert http_dispatcher(handler).send(MESSAGE) is True
        assert seen["body"]["to"] == "ada@example.com"
        assert seen["body"]["subject"] == "Hello"
        assert "patient_id" not in seen["body"]
        assert seen["auth"] == "Bearer key"

    def test_http_error_returns_false(self):
        assert http_dispatcher(lambda r: httpx.Response(500)).send(MESSAGE) is False

    def test_reported_failure_returns_false(self):
        handler = lambda r: httpx.Response(200, json={"success": False, "error": "quota"})
        assert http_dispatcher(handler).send(MESSAGE) is False

    def test_transport_error_returns_false(self):
        def handler(request):
            raise httpx.ConnectTimeout("slow", request=request)

        assert http_dispatcher(handler).send(MESSAGE) is False


def test_logging_dispatcher_records():
    dispatcher = LoggingNotificationDispatcher()
    assert dispatcher.send(MESSAGE) is True
    assert dispatcher.sent == [MESSAGE]


class TestMessages:
    patient = Patient(
        patient_id="p-1", clinic_id="c-1", first_name="Ada", last_name="Lovelace", age=40, email="ada@example.com"
    )

    def test_treatment_schedule_lists_appointments(self):
        plan = TreatmentPlan(
            patient_id="p-1",
            appointments=[
                Appointment(appointment_date="2026-11-03", appointment_time="10:30:00", therapy_code="LGT-001"),
                Appointment(appointment_date="2026-11-02", appointment_time="09:00:00", appointment_type="therapy"),
            ],
        )
        message = treatment_schedule_message(self.patient, plan)

        assert message.to == "ada@example.com"
        assert message.kind == "treatment_schedule"
        assert "Dear Ada Lovelace" in message.html
        assert message.html.index("2026-11-02") < message.html.index("2026-11-03")
        assert "LGT-001" in message.html

    def test_reassessment_message(self):
        record = ReassessmentRecord(
            record_id="r-1",
            patient_id="p-1",
            scheduled_date=datetime(2026, 11, 18, 9, 0, tzinfo=timezone.utc),
        )
        message = reassessment_scheduled_message(self.patient, record)

        assert "Wednesday 18 November 2026 at 09:00" in message.html
        assert message.kind == "reassessment_scheduled"
