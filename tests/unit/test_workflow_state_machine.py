"""
Unit Tests for the Workflow State Machine

Transitions, idempotence, rejected stages, storage fallback and the
post-reassessment decision.
"""
import httpx
import pytest

from api.models.reassessment import ComparisonResult
from api.models.workflow import WorkflowStage
from core import DataIntegrityError
from engine.workflow import ALLOWED_TRANSITIONS, WorkflowStateMachine
from storage import InMemoryRecordStore, PostgrestRecordStore, Tables

S = WorkflowStage


class RejectingStore(InMemoryRecordStore):
    """In-memory store that can be told to refuse writes like a 4xx answer."""

    def __init__(self):
        super().__init__()
        self.reject_writes = False

    def upsert(self, table, record, key):
        if self.reject_writes:
            raise DataIntegrityError(f"Record store rejected POST on {table}", entity=table)
        return super().upsert(table, record, key)


@pytest.fixture
def machine(store, clock):
    return WorkflowStateMachine(store, clock=clock)


def walk(machine, context, patient_id, *stages):
    for stage in stages:
        assert machine.advance_stage(context, patient_id, stage)


class TestStartWorkflow:
    def test_creates_registered_status(self, machine, context, store):
        status = machine.start_workflow(context, "p-1")

        assert status.current_stage == S.REGISTERED
        assert status.clinic_id == "clinic_a"
        assert store.count(Tables.WORKFLOW_STATUS) == 1

    def test_idempotent(self, machine, context, store, clock):
        first = machine.start_workflow(context, "p-1")
        clock.advance(hours=1)
        second = machine.start_workflow(context, "p-1")

        assert second == first
        assert store.count(Tables.WORKFLOW_STATUS) == 1

    def test_unknown_patient_reads_as_registered(self, machine):
        assert machine.get_status("nobody").current_stage == S.REGISTERED


class TestAdvanceStage:
    """Tests for advance_stage."""

    def test_forward_path(self, machine, context):
        machine.start_workflow(context, "p-1")
        walk(
            machine,
            context,
            "p-1",
            S.HEALTH_ASSESSMENT,
            S.IRIS_ASSESSMENT,
            S.REPORT_GENERATION,
            S.TREATMENT_PLANNING,
            S.TREATMENT_SCHEDULING,
            S.IN_TREATMENT,
        )
        status = machine.get_status("p-1")

        assert status.current_stage == S.IN_TREATMENT
        assert status.completed_stages[S.HEALTH_ASSESSMENT] is True
        assert status.completed_stages[S.TREATMENT_SCHEDULING] is True
        assert status.completed_stages[S.IN_TREATMENT] is False

    def test_same_target_twice_is_idempotent(self, machine, context, store, clock):
        machine.start_workflow(context, "p-1")
        assert machine.advance_stage(context, "p-1", S.HEALTH_ASSESSMENT)
        first = machine.get_status("p-1")
        transitions = store.count(Tables.WORKFLOW_TRANSITIONS)

        clock.advance(minutes=5)
        assert machine.advance_stage(context, "p-1", S.HEALTH_ASSESSMENT)

        assert machine.get_status("p-1") == first
        assert store.count(Tables.WORKFLOW_TRANSITIONS) == transitions

    @pytest.mark.parametrize("bad", ["not_a_stage", "", "SCHEDULED"])
    def test_unrecognized_stage_rejected(self, machine, context, bad):
        machine.start_workflow(context, "p-1")

        assert machine.advance_stage(context, "p-1", bad) is False
        assert machine.get_status("p-1").current_stage == S.REGISTERED

    def test_stage_names_accepted(self, machine, context):
        machine.start_workflow(context, "p-1")
        assert machine.advance_stage(context, "p-1", "HEALTH_ASSESSMENT")
        assert machine.get_status("p-1").current_stage == S.HEALTH_ASSESSMENT

    def test_skipping_ahead_rejected(self, machine, context):
        machine.start_workflow(context, "p-1")

        assert machine.advance_stage(context, "p-1", S.IN_TREATMENT) is False
        assert machine.get_status("p-1").current_stage == S.REGISTERED

    @pytest.mark.parametrize("terminal", [S.COMPLETED, S.MAINTENANCE])
    def test_terminal_stages_have_no_exit(self, machine, context, terminal):
        assert ALLOWED_TRANSITIONS[terminal] == frozenset()

    def test_transition_audit_row(self, machine, context, store):
        machine.start_workflow(context, "p-1")
        machine.advance_stage(context, "p-1", S.HEALTH_ASSESSMENT, action="assessment_started")

        rows = store.select(Tables.WORKFLOW_TRANSITIONS, {"patient_id": "p-1"})
        assert len(rows) == 1
        assert rows[0]["from_stage"] == "registered"
        assert rows[0]["to_stage"] == "health_assessment"
        assert rows[0]["action"] == "assessment_started"
        assert rows[0]["performed_by"] == "dr_test"

    def test_leaving_assessment_stamps_time(self, machine, context, clock):
        machine.start_workflow(context, "p-1")
        machine.advance_stage(context, "p-1", S.HEALTH_ASSESSMENT)
        assert machine.get_status("p-1").last_assessment_at is None

        machine.advance_stage(context, "p-1", S.IRIS_ASSESSMENT)
        assert machine.get_status("p-1").last_assessment_at == clock.now

    def test_stage_data_merged(self, machine, context):
        machine.start_workflow(context, "p-1")
        machine.advance_stage(context, "p-1", S.HEALTH_ASSESSMENT, stage_data={"a": 1})
        machine.advance_stage(context, "p-1", S.IRIS_ASSESSMENT, stage_data={"b": 2})

        assert machine.get_status("p-1").stage_data == {"a": 1, "b": 2}


class TestStorageFallback:
    """Store outages never block a transition."""

    def test_write_failure_keeps_local_stage(self, machine, context, store):
        machine.start_workflow(context, "p-1")
        store.disconnect()

        assert machine.advance_stage(context, "p-1", S.HEALTH_ASSESSMENT) is True
        assert machine.get_status("p-1").current_stage == S.HEALTH_ASSESSMENT
        assert machine.pending_reconciliation == {"p-1"}

    def test_cache_stays_authoritative_after_reconnect(self, machine, context, store):
        machine.start_workflow(context, "p-1")
        store.disconnect()
        machine.advance_stage(context, "p-1", S.HEALTH_ASSESSMENT)
        store.connect()

        assert machine.get_status("p-1").current_stage == S.HEALTH_ASSESSMENT
        stored = store.select_one(Tables.WORKFLOW_STATUS, {"patient_id": "p-1"})
        assert stored["current_stage"] == "registered"

    def test_next_successful_write_reconciles(self, machine, context, store):
        machine.start_workflow(context, "p-1")
        machine.start_workflow(context, "p-2")
        store.disconnect()
        machine.advance_stage(context, "p-1", S.HEALTH_ASSESSMENT)
        store.connect()

        machine.advance_stage(context, "p-2", S.HEALTH_ASSESSMENT)

        assert machine.pending_reconciliation == frozenset()
        stored = store.select_one(Tables.WORKFLOW_STATUS, {"patient_id": "p-1"})
        assert stored["current_stage"] == "health_assessment"

    def test_explicit_reconcile(self, machine, context, store):
        machine.start_workflow(context, "p-1")
        store.disconnect()
        machine.advance_stage(context, "p-1", S.HEALTH_ASSESSMENT)
        assert machine.reconcile() == 0

        store.connect()
        assert machine.reconcile() == 1
        stored = store.select_one(Tables.WORKFLOW_STATUS, {"patient_id": "p-1"})
        assert stored["current_stage"] == "health_assessment"

    def test_start_during_outage_writes_nothing(self, machine, context, store):
        store.disconnect()
        status = machine.start_workflow(context, "p-1")
        store.connect()

        assert status.current_stage == S.REGISTERED
        assert machine.pending_reconciliation == frozenset()
        assert machine.reconcile() == 0
        assert store.count(Tables.WORKFLOW_STATUS) == 0

    def test_start_during_outage_keeps_stored_stage(self, store, context, clock):
        first = WorkflowStateMachine(store, clock=clock)
        second = WorkflowStateMachine(store, clock=clock)
        first.start_workflow(context, "p-1")
        walk(first, context, "p-1", S.HEALTH_ASSESSMENT, S.IRIS_ASSESSMENT)

        store.disconnect()
        second.start_workflow(context, "p-1")
        store.connect()
        second.start_workflow(context, "p-2")

        stored = store.select_one(Tables.WORKFLOW_STATUS, {"patient_id": "p-1"})
        assert stored["current_stage"] == "iris_assessment"
        assert second.get_status("p-1").current_stage == S.IRIS_ASSESSMENT

    def test_read_failure_uses_cache(self, machine, context, store):
        machine.start_workflow(context, "p-1")
        machine.advance_stage(context, "p-1", S.HEALTH_ASSESSMENT)
        store.disconnect()

        assert machine.get_status("p-1").current_stage == S.HEALTH_ASSESSMENT


class TestRejectedWrites:
    """A write the store refuses is dropped and the prior stage kept."""

    def test_expired_key_does_not_raise(self, context, clock):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "GET":
                return httpx.Response(
                    200, json=[{"patient_id": "p-1", "clinic_id": "clinic_a", "current_stage": "registered"}]
                )
            return httpx.Response(401, json={"message": "JWT expired"})

        store = PostgrestRecordStore(
            "https://db.example.com", "expired-key", transport=httpx.MockTransport(handler)
        )
        machine = WorkflowStateMachine(store, clock=clock)

        assert machine.advance_stage(context, "p-1", "health_assessment") is False
        assert machine.get_status("p-1").current_stage == S.REGISTERED
        assert machine.pending_reconciliation == frozenset()

    def test_prior_stage_stays_cached(self, context, clock):
        store = RejectingStore()
        machine = WorkflowStateMachine(store, clock=clock)
        machine.start_workflow(context, "p-1")
        machine.advance_stage(context, "p-1", S.HEALTH_ASSESSMENT)

        store.reject_writes = True
        assert machine.advance_stage(context, "p-1", S.IRIS_ASSESSMENT) is False
        store.disconnect()

        assert machine.get_status("p-1").current_stage == S.HEALTH_ASSESSMENT
        assert store.count(Tables.WORKFLOW_TRANSITIONS) == 1

    def test_rejected_start_not_cached(self, context, clock):
        store = RejectingStore()
        store.reject_writes = True
        machine = WorkflowStateMachine(store, clock=clock)

        status = machine.start_workflow(context, "p-1")

        assert status.current_stage == S.REGISTERED
        assert machine.pending_reconciliation == frozenset()
        assert store.count(Tables.WORKFLOW_STATUS) == 0

    def test_rejected_reconcile_dropped(self, context, clock):
        store = RejectingStore()
        machine = WorkflowStateMachine(store, clock=clock)
        machine.start_workflow(context, "p-1")
        store.disconnect()
        machine.advance_stage(context, "p-1", S.HEALTH_ASSESSMENT)
        store.connect()
        store.reject_writes = True

        assert machine.reconcile() == 0
        assert machine.pending_reconciliation == frozenset()
        assert machine.get_status("p-1").current_stage == S.REGISTERED


class TestReassessmentDecision:
    @pytest.mark.parametrize(
        "improvement,stage",
        [
            (35, S.COMPLETED),
            (31, S.COMPLETED),
            (30, S.IN_TREATMENT),
            (0, S.IN_TREATMENT),
            (-10, S.IN_TREATMENT),
            (-11, S.HEALTH_ASSESSMENT),
        ],
    )
    def test_thresholds(self, machine, improvement, stage):
        comparison = ComparisonResult(overall_improvement=improvement)
        assert machine.next_stage_after_reassessment(comparison) == stage

    def test_no_comparison_continues_treatment(self, machine):
        assert machine.next_stage_after_reassessment(None) == S.IN_TREATMENT

    def test_due_after_interval(self, machine, context, clock):
        machine.start_workflow(context, "p-1")
        walk(
            machine,
            context,
            "p-1",
            S.HEALTH_ASSESSMENT,
            S.IRIS_ASSESSMENT,
            S.REPORT_GENERATION,
            S.TREATMENT_PLANNING,
            S.TREATMENT_SCHEDULING,
            S.IN_TREATMENT,
        )
        status = machine.get_status("p-1")

        clock.advance(days=29)
        assert machine.is_reassessment_due(status) is False
        clock.advance(days=1)
        assert machine.is_reassessment_due(status) is True
