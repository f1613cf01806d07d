"""
Workflow state machine.

GOVERNANCE:
- Stage changes go through advance_stage only
- Storage failures never block a transition: the local cache becomes
  authoritative and is written back on the next successful write
- Unrecognized or disallowed stages are logged and dropped, never persisted
- A write the store rejects is dropped and the prior stage kept
- Concurrent sessions on one patient are last-write-wins at the store
"""

from datetime import datetime
from typing import Any, Callable, Optional

from api.models.patient import utc_now
from api.models.reassessment import ComparisonResult
from api.models.workflow import StageTransition, WorkflowStage, WorkflowStatus
from core import DataIntegrityError, TransientStorageError, get_audit_logger, get_logger
from engine.context import SessionContext
from storage import RecordStore, Tables, parse_record, parse_records, to_record

logger = get_logger(__name__)
audit = get_audit_logger()

S = WorkflowStage

ALLOWED_TRANSITIONS: dict[WorkflowStage, frozenset[WorkflowStage]] = {
    S.REGISTERED: frozenset({S.HEALTH_ASSESSMENT}),
    S.HEALTH_ASSESSMENT: frozenset({S.IRIS_ASSESSMENT}),
    S.IRIS_ASSESSMENT: frozenset({S.REPORT_GENERATION}),
    S.REPORT_GENERATION: frozenset({S.TREATMENT_PLANNING}),
    S.TREATMENT_PLANNING: frozenset({S.TREATMENT_SCHEDULING}),
    S.TREATMENT_SCHEDULING: frozenset({S.IN_TREATMENT}),
    S.IN_TREATMENT: frozenset({S.REASSESSMENT, S.COMPLETED, S.MAINTENANCE}),
    S.REASSESSMENT: frozenset({S.IN_TREATMENT, S.COMPLETED, S.HEALTH_ASSESSMENT}),
    S.COMPLETED: frozenset(),
    S.MAINTENANCE: frozenset(),
}

# Leaving these stages means a questionnaire was just scored.
ASSESSMENT_STAGES = frozenset({S.HEALTH_ASSESSMENT, S.REASSESSMENT})


class WorkflowStateMachine:
    """Holds and advances each patient's workflow stage."""

    def __init__(
        self,
        store: RecordStore,
        reassessment_interval_days: int = 30,
        completion_threshold: int = 30,
        regression_threshold: int = -10,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.reassessment_interval_days = reassessment_interval_days
        self.completion_threshold = completion_threshold
        self.regression_threshold = regression_threshold
        self.clock = clock
        self._cache: dict[str, WorkflowStatus] = {}
        self._unreconciled: set[str] = set()

    # -- reads ---------------------------------------------------------------

    def get_status(self, patient_id: str) -> WorkflowStatus:
        """
        Current workflow status.

        Falls back to the cached status when the store cannot be read, and
        to a fresh REGISTERED status when nothing is known at all.
        """
        if patient_id in self._unreconciled:
            return self._cache[patient_id]

        try:
            row = self.store.select_one(Tables.WORKFLOW_STATUS, {"patient_id": patient_id})
        except (TransientStorageError, DataIntegrityError) as e:
            audit.warning(
                f"Workflow status read failed, using cached stage: {e.message}",
                extra={"patient_id": patient_id, "event": "status_read_fallback"},
            )
            row = None

        if row is not None:
            status = parse_record(WorkflowStatus, row)
            if status is not None:
                self._cache[patient_id] = status
                return status

        cached = self._cache.get(patient_id)
        if cached is not None:
            return cached
        return WorkflowStatus(patient_id=patient_id, current_stage=S.REGISTERED)

    def list_for_clinic(self, clinic_id: str) -> list[WorkflowStatus]:
        """All workflow statuses of a clinic, cache overriding the store."""
        try:
            rows = self.store.select(Tables.WORKFLOW_STATUS, {"clinic_id": clinic_id})
            statuses = {s.patient_id: s for s in parse_records(WorkflowStatus, rows)}
        except (TransientStorageError, DataIntegrityError) as e:
            logger.warning(f"Clinic workflow list unavailable, using cache: {e.message}")
            statuses = {}
        for patient_id in self._unreconciled:
            statuses[patient_id] = self._cache[patient_id]
        for patient_id, status in self._cache.items():
            statuses.setdefault(patient_id, status)
        return [s for s in statuses.values() if s.clinic_id == clinic_id]

    # -- writes --------------------------------------------------------------

    def start_workflow(self, context: SessionContext, patient_id: str) -> WorkflowStatus:
        """
        Create the REGISTERED status, or return the existing one.

        When the store cannot say whether a status exists nothing is written,
        so a stored stage is never replaced by a fresh REGISTERED one.
        """
        if patient_id in self._cache:
            return self.get_status(patient_id)

        status = WorkflowStatus(
            patient_id=patient_id,
            clinic_id=context.clinic_id,
            current_stage=S.REGISTERED,
            updated_at=self.clock(),
        )
        try:
            existing = self.store.select_one(Tables.WORKFLOW_STATUS, {"patient_id": patient_id})
        except (TransientStorageError, DataIntegrityError) as e:
            audit.warning(
                f"Workflow existence unknown, status not created: {e.message}",
                extra={"patient_id": patient_id, "event": "workflow_start_deferred"},
            )
            return status
        if existing is not None:
            return self.get_status(patient_id)

        self._cache[patient_id] = status
        if not self._write(status):
            del self._cache[patient_id]
            return status
        audit.info(
            "Workflow started",
            extra={
                "patient_id": patient_id,
                "clinic_id": context.clinic_id,
                "user_id": context.user_id,
                "event": "workflow_started",
            },
        )
        return status

    def advance_stage(
        self,
        context: SessionContext,
        patient_id: str,
        target: "str | WorkflowStage",
        stage_data: Optional[dict[str, Any]] = None,
        action: Optional[str] = None,
    ) -> bool:
        """
        Move a patient to ``target``.

        Returns True when the patient is at ``target`` afterwards (including
        when it already was), False when the stage is unrecognized, not
        reachable from the current one, or the store rejected the write.
        Never raises on storage failure.
        """
        stage = WorkflowStage.parse(target)
        if stage is None:
            audit.error(
                f"Rejected unrecognized stage {target!r}",
                extra={"patient_id": patient_id, "user_id": context.user_id, "event": "stage_rejected"},
            )
            return False

        status = self.get_status(patient_id)
        current = status.current_stage
        if current == stage:
            return True

        if stage not in ALLOWED_TRANSITIONS[current]:
            audit.warning(
                f"Rejected transition {current.value} -> {stage.value}",
                extra={"patient_id": patient_id, "user_id": context.user_id, "event": "transition_rejected"},
            )
            return False

        now = self.clock()
        completed = dict(status.completed_stages)
        completed[current] = True
        updates: dict[str, Any] = {
            "current_stage": stage,
            "updated_at": now,
            "completed_stages": completed,
            "clinic_id": status.clinic_id or context.clinic_id,
            "stage_data": {**status.stage_data, **(stage_data or {})},
        }
        if current in ASSESSMENT_STAGES:
            updates["last_assessment_at"] = now
        if current == S.REASSESSMENT:
            updates["last_reassessment_at"] = now

        new_status = status.model_copy(update=updates)
        previous = self._cache.get(patient_id)
        self._cache[patient_id] = new_status
        if not self._write(new_status):
            if previous is None:
                del self._cache[patient_id]
            else:
                self._cache[patient_id] = previous
            return False
        self._record_transition(
            StageTransition(
                patient_id=patient_id,
                from_stage=current,
                to_stage=stage,
                action=action or f"advance_to_{stage.value}",
                performed_by=context.user_id,
                clinic_id=new_status.clinic_id,
                occurred_at=now,
            )
        )
        return True

    def reconcile(self) -> int:
        """Write cached statuses that missed the store; returns how many landed."""
        written = 0
        for patient_id in sorted(self._unreconciled):
            try:
                self.store.upsert(
                    Tables.WORKFLOW_STATUS, to_record(self._cache[patient_id]), key="patient_id"
                )
            except TransientStorageError:
                break
            except DataIntegrityError as e:
                audit.error(
                    f"Cached workflow status rejected by the store, dropped: {e.message}",
                    extra={"patient_id": patient_id, "event": "status_write_rejected"},
                )
                self._unreconciled.discard(patient_id)
                self._cache.pop(patient_id, None)
                continue
            self._unreconciled.discard(patient_id)
            written += 1
        if written:
            logger.info(f"Reconciled {written} cached workflow status(es)")
        return written

    @property
    def pending_reconciliation(self) -> frozenset[str]:
        return frozenset(self._unreconciled)

    def _write(self, status: WorkflowStatus) -> bool:
        """Store a status; False when the store refused it outright."""
        try:
            self.store.upsert(Tables.WORKFLOW_STATUS, to_record(status), key="patient_id")
        except TransientStorageError as e:
            self._unreconciled.add(status.patient_id)
            audit.warning(
                f"Workflow status write failed, keeping stage {status.current_stage.value} locally: {e.message}",
                extra={"patient_id": status.patient_id, "event": "status_write_fallback"},
            )
            return True
        except DataIntegrityError as e:
            audit.error(
                f"Workflow status write rejected, stage {status.current_stage.value} dropped: {e.message}",
                extra={"patient_id": status.patient_id, "event": "status_write_rejected"},
            )
            return False
        self._unreconciled.discard(status.patient_id)
        if self._unreconciled:
            self.reconcile()
        return True

    def _record_transition(self, transition: StageTransition) -> None:
        audit.info(
            f"{transition.from_stage.value} -> {transition.to_stage.value} ({transition.action})",
            extra={
                "patient_id": transition.patient_id,
                "clinic_id": transition.clinic_id,
                "user_id": transition.performed_by,
                "event": "stage_transition",
            },
        )
        try:
            self.store.insert(Tables.WORKFLOW_TRANSITIONS, to_record(transition))
        except (TransientStorageError, DataIntegrityError) as e:
            logger.warning(f"Transition audit row not stored: {e.message}")

    # -- reassessment timing and decisions -----------------------------------

    def days_since_assessment(
        self, status: WorkflowStatus, now: Optional[datetime] = None
    ) -> Optional[int]:
        if status.last_assessment_at is None:
            return None
        return ((now or self.clock()) - status.last_assessment_at).days

    def is_reassessment_due(
        self, status: WorkflowStatus, now: Optional[datetime] = None
    ) -> bool:
        """IN_TREATMENT patients whose last assessment is a full interval old."""
        if status.current_stage != S.IN_TREATMENT:
            return False
        days = self.days_since_assessment(status, now)
        return days is not None and days >= self.reassessment_interval_days

    def next_stage_after_reassessment(
        self, comparison: Optional[ComparisonResult]
    ) -> WorkflowStage:
        """Completed on strong improvement, restart on regression, else continue."""
        if comparison is None:
            return S.IN_TREATMENT
        if comparison.overall_improvement > self.completion_threshold:
            return S.COMPLETED
        if comparison.overall_improvement < self.regression_threshold:
            return S.HEALTH_ASSESSMENT
        return S.IN_TREATMENT
