"""API models."""

from api.models.assessment import (
    AssessmentCategory,
    AssessmentMode,
    AssessmentSession,
    CategoryScoreSet,
    Contraindication,
    ContraindicationSeverity,
    Question,
    Response,
)
from api.models.iris import ConstitutionalType, IrisFinding, IrisSign, OrganAnalysis
from api.models.patient import Patient
from api.models.reassessment import (
    ComparisonResult,
    DomainComparison,
    ReassessmentDue,
    ReassessmentRecord,
    ReassessmentStatus,
    Reminder,
)
from api.models.report import AssessmentReport
from api.models.therapy import (
    TherapyPriority,
    TherapyProtocol,
    TherapyRecommendation,
)
from api.models.treatment import (
    Appointment,
    AppointmentSlot,
    ConfirmationResult,
    TreatmentPlan,
)
from api.models.workflow import StageTransition, WorkflowStage, WorkflowStatus

__all__ = [
    "Appointment",
    "AppointmentSlot",
    "AssessmentCategory",
    "AssessmentMode",
    "AssessmentReport",
    "AssessmentSession",
    "CategoryScoreSet",
    "ComparisonResult",
    "ConfirmationResult",
    "ConstitutionalType",
    "Contraindication",
    "ContraindicationSeverity",
    "DomainComparison",
    "IrisFinding",
    "IrisSign",
    "OrganAnalysis",
    "Patient",
    "Question",
    "ReassessmentDue",
    "ReassessmentRecord",
    "ReassessmentStatus",
    "Reminder",
    "Response",
    "StageTransition",
    "TherapyPriority",
    "TherapyProtocol",
    "TherapyRecommendation",
    "TreatmentPlan",
    "WorkflowStage",
    "WorkflowStatus",
]
