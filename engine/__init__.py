"""Assessment-to-treatment workflow engine."""

from engine.context import SessionContext
from engine.workflow_engine import ReassessmentOutcome, WorkflowEngine

# Singleton engine instance
_engine: WorkflowEngine | None = None


def get_engine() -> WorkflowEngine:
    """Get or create the workflow engine."""
    global _engine
    if _engine is None:
        _engine = WorkflowEngine()
    return _engine


__all__ = ["SessionContext", "WorkflowEngine", "ReassessmentOutcome", "get_engine"]
