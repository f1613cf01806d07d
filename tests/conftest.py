"""
Pytest Configuration and Fixtures

Shared fixtures for intake workflow tests.
"""
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from api.models.patient import Patient
from config import Settings
from engine import SessionContext, WorkflowEngine
from engine.questions import built_in_questions
from notifications import LoggingNotificationDispatcher
from storage import InMemoryRecordStore


class FakeClock:
    """Deterministic clock; a Monday morning unless moved."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 10, 19, 10, 0, tzinfo=timezone.utc))


@pytest.fixture
def store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def dispatcher() -> LoggingNotificationDispatcher:
    return LoggingNotificationDispatcher()


@pytest.fixture
def settings() -> Settings:
    return Settings()


@pytest.fixture
def context() -> SessionContext:
    return SessionContext(user_id="dr_test", clinic_id="clinic_a")


@pytest.fixture
def engine(store, dispatcher, settings, clock) -> WorkflowEngine:
    """Engine over an in-memory store with a log-only dispatcher."""
    return WorkflowEngine(store=store, dispatcher=dispatcher, settings=settings, clock=clock)


@pytest.fixture
def questions():
    return built_in_questions()


@pytest.fixture
def patient() -> Patient:
    return Patient(
        patient_id="p-001",
        clinic_id="clinic_a",
        first_name="Ada",
        last_name="Lovelace",
        age=40,
        email="ada@example.com",
        created_at=datetime(2026, 10, 1, tzinfo=timezone.utc),
    )


@pytest.fixture
def registered(engine, context, patient) -> Patient:
    """Patient registered with the engine (workflow at REGISTERED)."""
    engine.register_patient(context, patient)
    return patient


@pytest.fixture
def answer_all(engine, context):
    """Answer every question of a session with one letter."""

    def answer(session_id: str, letter: str) -> None:
        for question in engine.question_list():
            engine.record_response(context, session_id, question.question_id, letter)

    return answer
