"""API routes."""

from api.routes.assessment import router as assessment_router
from api.routes.iris import router as iris_router
from api.routes.patients import router as patients_router
from api.routes.reassessment import router as reassessment_router
from api.routes.report import router as report_router
from api.routes.treatment import router as treatment_router
from api.routes.workflow import router as workflow_router

__all__ = [
    "patients_router",
    "workflow_router",
    "assessment_router",
    "iris_router",
    "report_router",
    "treatment_router",
    "reassessment_router",
]
