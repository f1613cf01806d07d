"""
Intake workflow engine.

GOVERNANCE:
- Always produce a result: storage outages fall back to local state
- Patients are visible only to the clinic that owns them
- Clinical decisions (clearance, therapy choice) stay with the clinician;
  the engine only scores, screens and suggests
- Notifications are fire-and-forget and never undo a transition
"""

import json
import uuid
from collections import OrderedDict
from datetime import datetime, timedelta
from typing import Any, Iterable, Optional

from pydantic import BaseModel

from api.models.assessment import (
    AssessmentMode,
    AssessmentSession,
    CategoryScoreSet,
    Contraindication,
    Question,
    Response,
)
from api.models.iris import ConstitutionalType, IrisFinding
from api.models.patient import Patient, utc_now
from api.models.reassessment import (
    ComparisonResult,
    ReassessmentDue,
    ReassessmentRecord,
    ReassessmentStatus,
    Reminder,
)
from api.models.report import AssessmentReport
from api.models.therapy import SessionRecommendation, TherapyRecommendation
from api.models.treatment import (
    Appointment,
    ConfirmationResult,
    ConfirmationSteps,
    TreatmentPlan,
)
from api.models.workflow import WorkflowStage, WorkflowStatus
from config import Settings, get_settings
from core import (
    DataIntegrityError,
    RecordNotFoundError,
    TransientStorageError,
    ValidationError,
    get_audit_logger,
    get_logger,
)
from engine import iris, scheduling
from engine.context import SessionContext
from engine.contraindications import (
    ContraindicationDetector,
    default_rules,
    requires_clearance,
)
from engine.questions import QuestionBank
from engine.reassessment import ReassessmentComparator, severity_snapshot
from engine.scoring import ScoringEngine, latest_responses, letter_to_score
from engine.therapy import TherapyMatcher
from engine.workflow import WorkflowStateMachine
from notifications import NotificationDispatcher, get_dispatcher
from notifications.messages import (
    reassessment_scheduled_message,
    treatment_schedule_message,
)
from storage import RECORD_KEYS, RecordStore, Tables, get_storage, parse_records, to_record

logger = get_logger(__name__)
audit = get_audit_logger()

S = WorkflowStage


def _matches(model: BaseModel, match: dict[str, Any]) -> bool:
    record = to_record(model)
    return all(record.get(k) == v for k, v in match.items())


class ReassessmentOutcome(BaseModel):
    """What a completed reassessment decided."""

    patient_id: str
    session_id: str
    comparison: Optional[ComparisonResult] = None
    next_stage: WorkflowStage
    next_reassessment: Optional[ReassessmentRecord] = None


class WorkflowEngine:
    """
    Coordinates scoring, screening, matching and stage changes.

    GOVERNANCE:
    - Every patient-scoped call takes an explicit SessionContext
    - Reads go to the store; local records only cover outages
    """

    def __init__(
        self,
        store: Optional[RecordStore] = None,
        dispatcher: Optional[NotificationDispatcher] = None,
        settings: Optional[Settings] = None,
        clock=utc_now,
    ):
        self.settings = settings or get_settings()
        self.store = store if store is not None else get_storage()
        self.dispatcher = dispatcher if dispatcher is not None else get_dispatcher()
        self.clock = clock

        self.questions = QuestionBank(self.store)
        self.scoring = ScoringEngine()
        self.detector = ContraindicationDetector(
            default_rules(minimum_age=self.settings.minimum_patient_age)
        )
        self.matcher = TherapyMatcher(
            threshold=self.settings.recommendation_threshold,
            severe_threshold=self.settings.severe_score_threshold,
            max_results=self.settings.max_recommendations,
        )
        self.comparator = ReassessmentComparator(stable_band=self.settings.stable_band)
        self.workflow = WorkflowStateMachine(
            self.store,
            reassessment_interval_days=self.settings.reassessment_interval_days,
            completion_threshold=self.settings.completion_improvement_threshold,
            regression_threshold=self.settings.regression_threshold,
            clock=clock,
        )

        # Writes the store could not take yet, flushed on the next good write
        self._pending: dict[str, list[BaseModel]] = {}
        # Bounded last-known records, consulted only when a read fails
        self._known: OrderedDict[tuple[str, str], BaseModel] = OrderedDict()

    # -- storage helpers -----------------------------------------------------

    def _write(self, table: str, model: BaseModel) -> None:
        key = RECORD_KEYS.get(table)
        if key:
            self.store.upsert(table, to_record(model), key=key)
        else:
            self.store.insert(table, to_record(model))

    def _save(self, table: str, model: BaseModel) -> bool:
        """
        Write a record, never raising on storage failure.

        An unreachable store defers the write: the record is kept locally,
        served to reads and written on the next successful save. A write the
        store rejects is logged and dropped. Returns True only when stored.
        """
        try:
            self._write(table, model)
        except TransientStorageError as e:
            self._defer(table, model)
            audit.warning(
                f"{table} write deferred, kept locally: {e.message}",
                extra={"patient_id": getattr(model, "patient_id", None), "event": "storage_fallback"},
            )
            return False
        except DataIntegrityError as e:
            audit.error(
                f"{table} write rejected by the store, dropped: {e.message}",
                extra={"patient_id": getattr(model, "patient_id", None), "event": "storage_rejected"},
            )
            return False

        self._discard_pending(table, model)
        self._remember(table, model)
        if self._pending:
            self.flush_pending()
        return True

    def flush_pending(self) -> int:
        """Write deferred records in order; returns how many landed."""
        written = 0
        for table in list(self._pending):
            queue = self._pending[table]
            while queue:
                model = queue[0]
                try:
                    self._write(table, model)
                except TransientStorageError:
                    return written
                except DataIntegrityError as e:
                    audit.error(
                        f"Deferred {table} write rejected by the store, dropped: {e.message}",
                        extra={"patient_id": getattr(model, "patient_id", None), "event": "storage_rejected"},
                    )
                else:
                    self._remember(table, model)
                    written += 1
                queue.pop(0)
            del self._pending[table]
        if written:
            logger.info(f"Flushed {written} deferred record(s)")
        return written

    @property
    def pending_writes(self) -> int:
        return sum(len(queue) for queue in self._pending.values())

    def _identity(self, table: str, model: BaseModel) -> str:
        key = RECORD_KEYS.get(table)
        if key:
            return str(getattr(model, key))
        return json.dumps(to_record(model), sort_keys=True)

    def _defer(self, table: str, model: BaseModel) -> None:
        self._discard_pending(table, model)
        self._pending.setdefault(table, []).append(model)

    def _discard_pending(self, table: str, model: BaseModel) -> None:
        if table not in self._pending or table not in RECORD_KEYS:
            return
        identity = self._identity(table, model)
        self._pending[table] = [
            m for m in self._pending[table] if self._identity(table, m) != identity
        ]

    def _remember(self, table: str, model: BaseModel) -> None:
        entry = (table, self._identity(table, model))
        self._known[entry] = model
        self._known.move_to_end(entry)
        while len(self._known) > self.settings.record_cache_size:
            self._known.popitem(last=False)

    def _select(self, table: str, model, match: dict) -> list:
        """Records matching ``match``; deferred writes override stored ones."""
        try:
            found = parse_records(model, self.store.select(table, match))
        except (TransientStorageError, DataIntegrityError) as e:
            logger.warning(f"{table} read failed, using last known records: {e.message}")
            found = [m for (t, _), m in self._known.items() if t == table and _matches(m, match)]
        else:
            for record in found:
                self._remember(table, record)

        pending = [m for m in self._pending.get(table, []) if _matches(m, match)]
        if not pending:
            return found
        if table not in RECORD_KEYS:
            return found + pending
        merged = {self._identity(table, m): m for m in found}
        merged.update((self._identity(table, m), m) for m in pending)
        return list(merged.values())

    # -- patients and workflow -----------------------------------------------

    def register_patient(self, context: SessionContext, patient: Patient) -> WorkflowStatus:
        """Store a new patient and open their workflow."""
        if patient.clinic_id != context.clinic_id:
            raise ValidationError(
                "Patient belongs to a different clinic", field="clinic_id"
            )
        existing = self._select(Tables.PATIENTS, Patient, {"patient_id": patient.patient_id})
        if existing and existing[0].clinic_id != patient.clinic_id:
            raise ValidationError(
                f"Patient id {patient.patient_id} is already registered", field="patient_id"
            )
        self._save(Tables.PATIENTS, patient)
        return self.workflow.start_workflow(context, patient.patient_id)

    def get_patient(self, context: SessionContext, patient_id: str) -> Patient:
        """A patient of the caller's clinic; anyone else's reads as missing."""
        found = self._select(Tables.PATIENTS, Patient, {"patient_id": patient_id})
        if found and found[0].clinic_id != context.clinic_id:
            audit.warning(
                "Patient requested from another clinic",
                extra={
                    "patient_id": patient_id,
                    "clinic_id": context.clinic_id,
                    "user_id": context.user_id,
                    "event": "clinic_mismatch",
                },
            )
            found = []
        if not found:
            raise RecordNotFoundError(f"Patient {patient_id} not found", entity="patient")
        return found[0]

    def start_workflow(self, context: SessionContext, patient_id: str) -> WorkflowStatus:
        self.get_patient(context, patient_id)
        return self.workflow.start_workflow(context, patient_id)

    def get_status(self, context: SessionContext, patient_id: str) -> WorkflowStatus:
        self.get_patient(context, patient_id)
        return self.workflow.get_status(patient_id)

    def advance_stage(
        self, context: SessionContext, patient_id: str, target: "str | WorkflowStage"
    ) -> bool:
        self.get_patient(context, patient_id)
        return self.workflow.advance_stage(context, patient_id, target)

    def workflow_stats(self, context: SessionContext) -> dict[str, int]:
        """Patients of the clinic per stage."""
        counts = {stage.value: 0 for stage in WorkflowStage}
        for status in self.workflow.list_for_clinic(context.clinic_id):
            counts[status.current_stage.value] += 1
        return counts

    def incomplete_assessments(self, context: SessionContext) -> list[WorkflowStatus]:
        """Clinic workflows still before treatment, most recently touched first."""
        pending = [
            s
            for s in self.workflow.list_for_clinic(context.clinic_id)
            if s.current_stage != S.IN_TREATMENT and not s.current_stage.is_terminal
        ]
        return sorted(pending, key=lambda s: s.updated_at, reverse=True)

    # -- questionnaire -------------------------------------------------------

    def question_list(self) -> list[Question]:
        return self.questions.questions()

    def start_assessment(
        self,
        context: SessionContext,
        patient_id: str,
        mode: AssessmentMode = AssessmentMode.INITIAL,
    ) -> AssessmentSession:
        """Open a questionnaire session for a patient."""
        self.get_patient(context, patient_id)
        session = AssessmentSession(
            session_id=str(uuid.uuid4()),
            patient_id=patient_id,
            clinic_id=context.clinic_id,
            mode=mode,
            created_at=self.clock(),
        )
        self._save(Tables.SESSIONS, session)

        if mode == AssessmentMode.INITIAL:
            status = self.workflow.get_status(patient_id)
            if status.current_stage == S.REGISTERED:
                self.workflow.advance_stage(
                    context, patient_id, S.HEALTH_ASSESSMENT, action="assessment_started"
                )
        return session

    def get_session(self, context: SessionContext, session_id: str) -> AssessmentSession:
        found = self._select(Tables.SESSIONS, AssessmentSession, {"session_id": session_id})
        if found:
            try:
                self.get_patient(context, found[0].patient_id)
            except RecordNotFoundError:
                found = []
        if not found:
            raise RecordNotFoundError(f"Session {session_id} not found", entity="session")
        return found[0]

    def record_response(
        self,
        context: SessionContext,
        session_id: str,
        question_id: str,
        letter: str,
        text: Optional[str] = None,
    ) -> Response:
        """
        Save one answer.

        An unknown question is a data integrity problem: the answer is logged
        and dropped. An unrecognized letter scores a neutral 3.
        """
        self.get_session(context, session_id)
        if self.questions.get(question_id) is None:
            audit.error(
                f"Dropped response to unknown question {question_id!r}",
                extra={"user_id": context.user_id, "event": "response_rejected"},
            )
            raise DataIntegrityError(
                f"Unknown question {question_id}",
                entity="question",
                details={"session_id": session_id},
            )

        response = Response(
            session_id=session_id,
            question_id=question_id,
            letter=letter,
            score=letter_to_score(letter),
            free_text=text,
            recorded_at=self.clock(),
        )
        self._save(Tables.RESPONSES, response)
        return response

    def _latest_answers(self, session_id: str) -> dict[str, Response]:
        return latest_responses(
            self._select(Tables.RESPONSES, Response, {"session_id": session_id})
        )

    def responses(self, context: SessionContext, session_id: str) -> dict[str, Response]:
        """Latest response per question for a session."""
        self.get_session(context, session_id)
        return self._latest_answers(session_id)

    def compute_scores(self, context: SessionContext, session_id: str) -> CategoryScoreSet:
        return self.scoring.compute(self.question_list(), self.responses(context, session_id))

    def detect_contraindications(
        self, context: SessionContext, session_id: str
    ) -> list[Contraindication]:
        session = self.get_session(context, session_id)
        patient = self.get_patient(context, session.patient_id)
        return self.detector.detect(
            patient, self.question_list(), self._latest_answers(session_id)
        )

    def complete_health_assessment(
        self, context: SessionContext, session_id: str
    ) -> AssessmentSession:
        """
        Score and screen a session, then move the patient on to the iris stage.

        Results are recomputed from the latest responses and overwrite the
        stored ones, so repeating the call changes nothing.
        """
        session = self._finalise_session(context, session_id)
        if session.mode == AssessmentMode.INITIAL:
            status = self.workflow.get_status(session.patient_id)
            if status.current_stage == S.HEALTH_ASSESSMENT:
                self.workflow.advance_stage(
                    context,
                    session.patient_id,
                    S.IRIS_ASSESSMENT,
                    stage_data={"health_session_id": session_id},
                    action="health_assessment_completed",
                )
        return session

    def _finalise_session(self, context: SessionContext, session_id: str) -> AssessmentSession:
        session = self.get_session(context, session_id)
        patient = self.get_patient(context, session.patient_id)
        questions = self.question_list()
        answers = self._latest_answers(session_id)
        updated = session.model_copy(
            update={
                "category_scores": self.scoring.compute(questions, answers),
                "contraindications": self.detector.detect(patient, questions, answers),
                "completed_at": session.completed_at or self.clock(),
            }
        )
        self._save(Tables.SESSIONS, updated)
        return updated

    def completed_sessions(
        self, context: SessionContext, patient_id: str
    ) -> list[AssessmentSession]:
        """Completed sessions for a patient, oldest first."""
        self.get_patient(context, patient_id)
        return self._completed_sessions(patient_id)

    def _completed_sessions(self, patient_id: str) -> list[AssessmentSession]:
        sessions = self._select(Tables.SESSIONS, AssessmentSession, {"patient_id": patient_id})
        done = [s for s in sessions if s.is_complete and s.category_scores is not None]
        return sorted(done, key=lambda s: s.completed_at)

    def _latest_initial_session(self, patient_id: str) -> AssessmentSession:
        initial = [
            s for s in self._completed_sessions(patient_id) if s.mode == AssessmentMode.INITIAL
        ]
        if not initial:
            raise RecordNotFoundError(
                f"No completed health assessment for patient {patient_id}",
                entity="session",
            )
        return initial[-1]

    # -- iris ----------------------------------------------------------------

    def record_iris_finding(self, context: SessionContext, finding: IrisFinding) -> IrisFinding:
        """Store the iris finding and move on to report generation."""
        self.get_patient(context, finding.patient_id)
        if finding.clinic_id is None:
            finding = finding.model_copy(update={"clinic_id": context.clinic_id})
        self._save(Tables.IRIS_ASSESSMENTS, finding)

        status = self.workflow.get_status(finding.patient_id)
        if status.current_stage == S.IRIS_ASSESSMENT:
            self.workflow.advance_stage(
                context,
                finding.patient_id,
                S.REPORT_GENERATION,
                stage_data={"constitutional_type": finding.constitutional_type.value},
                action="iris_assessment_completed",
            )
        return finding

    def latest_iris_finding(
        self, context: SessionContext, patient_id: str
    ) -> Optional[IrisFinding]:
        self.get_patient(context, patient_id)
        return self._latest_iris(patient_id)

    def _latest_iris(self, patient_id: str) -> Optional[IrisFinding]:
        found = self._select(Tables.IRIS_ASSESSMENTS, IrisFinding, {"patient_id": patient_id})
        if not found:
            return None
        return max(found, key=lambda f: f.created_at)

    # -- recommendations and report ------------------------------------------

    def match_therapies(
        self,
        scores: CategoryScoreSet,
        constitutional_type: Optional[ConstitutionalType] = None,
        iris_domains: Iterable[str] = (),
    ) -> list[TherapyRecommendation]:
        return self.matcher.match(scores, constitutional_type, iris_domains)

    def generate_report(self, context: SessionContext, patient_id: str) -> AssessmentReport:
        """
        Build the assessment report and move the patient to treatment planning.

        The matcher runs once per health session; asking again for the same
        session reuses the recommendations stored for it.
        """
        self.get_patient(context, patient_id)
        session = self._latest_initial_session(patient_id)
        finding = self._latest_iris(patient_id)
        analysis = iris.organ_analysis(finding) if finding else []

        stored = self._select(
            Tables.RECOMMENDATIONS, SessionRecommendation, {"session_id": session.session_id}
        )
        if stored:
            recommendations = [
                r.as_recommendation() for r in sorted(stored, key=lambda r: r.position)
            ]
        else:
            recommendations = self.match_therapies(
                session.category_scores,
                finding.constitutional_type if finding else None,
                iris.problem_domains(analysis),
            )
            for position, recommendation in enumerate(recommendations):
                self._save(
                    Tables.RECOMMENDATIONS,
                    SessionRecommendation.model_validate(
                        {
                            **recommendation.model_dump(),
                            "patient_id": patient_id,
                            "session_id": session.session_id,
                            "position": position,
                        }
                    ),
                )

        report = AssessmentReport(
            patient_id=patient_id,
            clinic_id=context.clinic_id,
            session_id=session.session_id,
            generated_at=self.clock(),
            category_scores=session.category_scores,
            contraindications=session.contraindications,
            requires_clearance=requires_clearance(session.contraindications),
            constitutional_type=finding.constitutional_type if finding else None,
            organ_analysis=analysis,
            iris_signs=iris.iris_signs(finding) if finding else [],
            recommendations=recommendations,
        )

        status = self.workflow.get_status(patient_id)
        if status.current_stage == S.REPORT_GENERATION:
            self.workflow.advance_stage(
                context,
                patient_id,
                S.TREATMENT_PLANNING,
                stage_data={"requires_clearance": report.requires_clearance},
                action="report_generated",
            )
        return report

    # -- treatment -----------------------------------------------------------

    def _booked_appointments(self, clinic_id: str) -> list[Appointment]:
        return self._select(
            Tables.APPOINTMENTS, Appointment, {"status": "scheduled", "clinic_id": clinic_id}
        )

    def confirm_treatment_plan(
        self, context: SessionContext, plan: TreatmentPlan
    ) -> ConfirmationResult:
        """
        Book the plan's appointments and start treatment.

        Conflicts with existing bookings are reported, not refused. Failed
        steps are listed in the result; the workflow still advances.
        """
        patient = self.get_patient(context, plan.patient_id)
        session = self._latest_initial_session(plan.patient_id)
        if plan.appointments and requires_clearance(session.contraindications):
            raise ValidationError(
                "Clinical clearance required before scheduling treatment",
                field="appointments",
                details={"patient_id": plan.patient_id},
            )

        clinic_id = patient.clinic_id
        appointments = [
            a.model_copy(
                update={
                    "patient_id": a.patient_id or plan.patient_id,
                    "clinic_id": a.clinic_id or clinic_id,
                }
            )
            for a in plan.appointments
        ]
        errors = scheduling.validate_appointments(appointments)
        if errors:
            raise ValidationError(
                "Invalid appointments", field="appointments", details={"errors": errors}
            )

        plan = plan.model_copy(
            update={
                "plan_id": plan.plan_id or str(uuid.uuid4()),
                "clinic_id": clinic_id,
                "appointments": appointments,
                "created_at": self.clock(),
            }
        )
        steps = ConfirmationSteps(
            conflicts=scheduling.find_conflicts(appointments, self._booked_appointments(clinic_id))
        )

        steps.plan_saved = self._save(Tables.TREATMENT_PLANS, plan)
        if not steps.plan_saved:
            steps.errors.append("Failed to save treatment plan")

        if not appointments:
            steps.errors.append("No appointments created")
        else:
            stored = sum(self._save(Tables.APPOINTMENTS, a) for a in appointments)
            steps.appointment_count = stored
            steps.appointments_created = stored == len(appointments)
            if not steps.appointments_created:
                steps.errors.append("Some appointments were not stored")

        steps.workflow_updated = self._advance_through(
            context,
            plan.patient_id,
            [S.TREATMENT_SCHEDULING, S.IN_TREATMENT],
            action="treatment_plan_confirmed",
        )
        if not steps.workflow_updated:
            steps.errors.append("Workflow update failed")

        record = self.schedule_reassessment(context, plan.patient_id, notify=False)
        steps.reassessment_scheduled = record is not None

        if patient.email:
            steps.notification_sent = self._notify(patient, treatment_schedule_message(patient, plan))
            if not steps.notification_sent:
                steps.errors.append("Email notification failed")

        audit.info(
            f"Treatment plan {plan.plan_id} confirmed with {len(appointments)} appointment(s)",
            extra={
                "patient_id": plan.patient_id,
                "clinic_id": clinic_id,
                "user_id": context.user_id,
                "event": "treatment_confirmed",
            },
        )
        return ConfirmationResult(
            success=not steps.errors, plan_id=plan.plan_id, steps=steps
        )

    def _advance_through(
        self,
        context: SessionContext,
        patient_id: str,
        stages: list[WorkflowStage],
        action: str,
    ) -> bool:
        current = self.workflow.get_status(patient_id).current_stage
        if current in stages:
            stages = stages[stages.index(current) + 1:]
        return all(
            self.workflow.advance_stage(context, patient_id, stage, action=action)
            for stage in stages
        )

    def _notify(self, patient: Patient, message) -> bool:
        if not patient.email:
            logger.info(f"Patient {patient.patient_id} has no email, notification skipped")
            return False
        sent = self.dispatcher.send(message)
        if sent:
            try:
                self.store.insert(
                    Tables.NOTIFICATION_LOG,
                    {
                        "patient_id": patient.patient_id,
                        "clinic_id": patient.clinic_id,
                        "kind": message.kind,
                        "recipient": message.to,
                        "sent_at": self.clock().isoformat(),
                    },
                )
            except (TransientStorageError, DataIntegrityError) as e:
                logger.warning(f"Notification log not stored: {e.message}")
        return sent

    # -- reassessment cycle --------------------------------------------------

    def open_reassessment(
        self, context: SessionContext, patient_id: str
    ) -> Optional[ReassessmentRecord]:
        """The single scheduled (not yet completed) record, if any."""
        self.get_patient(context, patient_id)
        return self._open_reassessment(patient_id)

    def _open_reassessment(self, patient_id: str) -> Optional[ReassessmentRecord]:
        records = self._select(Tables.REASSESSMENTS, ReassessmentRecord, {"patient_id": patient_id})
        open_records = [r for r in records if r.status == ReassessmentStatus.SCHEDULED]
        return min(open_records, key=lambda r: r.scheduled_date) if open_records else None

    def schedule_reassessment(
        self,
        context: SessionContext,
        patient_id: str,
        scheduled_date: Optional[datetime] = None,
        notify: bool = True,
    ) -> ReassessmentRecord:
        """
        Book the next reassessment, or return the one already open.

        The date defaults to one interval from now and is moved to the first
        free weekday slot on the clinic grid. Reminders are created for the
        configured days before.
        """
        patient = self.get_patient(context, patient_id)
        existing = self._open_reassessment(patient_id)
        if existing is not None:
            return existing

        target = scheduled_date or self.clock() + timedelta(
            days=self.settings.reassessment_interval_days
        )
        slot = scheduling.first_free_slot(
            target,
            self.settings.clinic_opening_time,
            self.settings.clinic_closing_time,
            self.settings.appointment_duration_minutes,
            self._booked_appointments(patient.clinic_id),
        )
        record = ReassessmentRecord(
            record_id=str(uuid.uuid4()),
            patient_id=patient_id,
            clinic_id=patient.clinic_id,
            scheduled_date=slot or target,
            created_at=self.clock(),
        )
        self._save(Tables.REASSESSMENTS, record)

        if slot is not None:
            self._save(
                Tables.APPOINTMENTS,
                Appointment(
                    patient_id=patient_id,
                    clinic_id=patient.clinic_id,
                    appointment_date=slot.date().isoformat(),
                    appointment_time=slot.strftime("%H:%M:%S"),
                    appointment_type="reassessment",
                    duration_minutes=self.settings.appointment_duration_minutes,
                ),
            )

        for days_before, when in scheduling.reminder_dates(
            record.scheduled_date, self.settings.reminder_days_before
        ):
            message = "Reassessment due today" if days_before == 0 else f"Reassessment due in {days_before} days"
            self._save(
                Tables.REMINDERS,
                Reminder(
                    patient_id=patient_id,
                    record_id=record.record_id,
                    reminder_date=when,
                    message=message,
                ),
            )

        if notify:
            self._notify(patient, reassessment_scheduled_message(patient, record))
        return record

    def reassessments_due(
        self, context: SessionContext, now: Optional[datetime] = None
    ) -> list[ReassessmentDue]:
        """IN_TREATMENT patients of the clinic whose interval has elapsed."""
        now = now or self.clock()
        interval = self.settings.reassessment_interval_days
        due = []
        for status in self.workflow.list_for_clinic(context.clinic_id):
            if status.current_stage != S.IN_TREATMENT:
                continue
            last = status.last_assessment_at
            if last is None:
                try:
                    last = self.get_patient(context, status.patient_id).created_at
                except RecordNotFoundError:
                    continue
            days = (now - last).days
            if days >= interval:
                due.append(
                    ReassessmentDue(
                        patient_id=status.patient_id,
                        clinic_id=status.clinic_id,
                        last_assessment_at=last,
                        days_since_assessment=days,
                        days_overdue=days - interval,
                    )
                )
        return sorted(due, key=lambda d: d.days_overdue, reverse=True)

    def trigger_due_reassessments(
        self, context: SessionContext, now: Optional[datetime] = None
    ) -> list[str]:
        """Move every due patient to REASSESSMENT; returns their ids."""
        triggered = []
        for item in self.reassessments_due(context, now):
            if self.workflow.advance_stage(
                context, item.patient_id, S.REASSESSMENT, action="reassessment_due"
            ):
                triggered.append(item.patient_id)
        return triggered

    def start_reassessment(self, context: SessionContext, patient_id: str) -> AssessmentSession:
        """Open a reassessment questionnaire, entering REASSESSMENT if needed."""
        self.get_patient(context, patient_id)
        status = self.workflow.get_status(patient_id)
        if status.current_stage == S.IN_TREATMENT:
            self.workflow.advance_stage(
                context, patient_id, S.REASSESSMENT, action="reassessment_started"
            )
        elif status.current_stage != S.REASSESSMENT:
            raise ValidationError(
                f"Patient is not in treatment (stage: {status.current_stage.value})",
                field="stage",
            )
        return self.start_assessment(context, patient_id, AssessmentMode.REASSESSMENT)

    def compare_reassessment(
        self,
        previous: Optional[CategoryScoreSet],
        current: Optional[CategoryScoreSet],
    ) -> Optional[ComparisonResult]:
        if previous is None or current is None:
            return None
        return self.comparator.compare(severity_snapshot(previous), severity_snapshot(current))

    def complete_reassessment(
        self, context: SessionContext, patient_id: str, session_id: str
    ) -> ReassessmentOutcome:
        """
        Score the reassessment, compare it with the previous assessment and
        decide whether treatment completes, continues or restarts.
        """
        session = self.get_session(context, session_id)
        if session.patient_id != patient_id or session.mode != AssessmentMode.REASSESSMENT:
            raise ValidationError(
                "Session is not a reassessment for this patient", field="session_id"
            )

        status = self.workflow.get_status(patient_id)
        if session.is_complete and status.current_stage != S.REASSESSMENT:
            return self._previous_outcome(patient_id, session_id, status)

        session = self._finalise_session(context, session_id)
        earlier = [
            s for s in self._completed_sessions(patient_id) if s.session_id != session_id
        ]
        baseline = earlier[-1].category_scores if earlier else None
        comparison = self.compare_reassessment(baseline, session.category_scores)
        if comparison is None:
            logger.warning(f"No baseline assessment for patient {patient_id}, comparison skipped")

        record = self._open_reassessment(patient_id)
        if record is not None:
            closed = record.model_copy(
                update={
                    "status": ReassessmentStatus.COMPLETED,
                    "session_id": session_id,
                    "comparison_data": comparison,
                    "completed_at": self.clock(),
                }
            )
            self._save(Tables.REASSESSMENTS, closed)

        next_stage = self.workflow.next_stage_after_reassessment(comparison)
        if status.current_stage == S.IN_TREATMENT:
            self.workflow.advance_stage(context, patient_id, S.REASSESSMENT, action="reassessment_started")
        self.workflow.advance_stage(
            context,
            patient_id,
            next_stage,
            stage_data={
                "overall_improvement": comparison.overall_improvement if comparison else None
            },
            action=f"reassessment_complete_{next_stage.value}",
        )

        next_record = None
        if next_stage == S.IN_TREATMENT:
            next_record = self.schedule_reassessment(context, patient_id)

        return ReassessmentOutcome(
            patient_id=patient_id,
            session_id=session_id,
            comparison=comparison,
            next_stage=next_stage,
            next_reassessment=next_record,
        )

    def _previous_outcome(
        self, patient_id: str, session_id: str, status: WorkflowStatus
    ) -> ReassessmentOutcome:
        closed = [
            r
            for r in self._select(Tables.REASSESSMENTS, ReassessmentRecord, {"patient_id": patient_id})
            if r.session_id == session_id
        ]
        return ReassessmentOutcome(
            patient_id=patient_id,
            session_id=session_id,
            comparison=closed[0].comparison_data if closed else None,
            next_stage=status.current_stage,
            next_reassessment=self._open_reassessment(patient_id),
        )
