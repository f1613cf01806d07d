"""
FastAPI application for the Intake Workflow service.

GOVERNANCE:
- All clinical decisions by licensed clinicians
- Contraindication screening gates scheduling, never diagnosis
- Engine errors are returned with their code, never as bare 500s
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.routes import (
    assessment_router,
    iris_router,
    patients_router,
    reassessment_router,
    report_router,
    treatment_router,
    workflow_router,
)
from config import get_settings
from core import WorkflowEngineError, get_logger, setup_logging

settings = get_settings()
setup_logging(level=settings.log_level, log_file=settings.log_file)
logger = get_logger(__name__)

ERROR_STATUS = {
    "VALIDATION_ERROR": 400,
    "NOT_FOUND": 404,
    "DATA_INTEGRITY_ERROR": 409,
    "STORAGE_UNAVAILABLE": 503,
    "NOTIFICATION_ERROR": 503,
}

app = FastAPI(
    title="Intake Workflow API",
    description="Assessment-to-treatment workflow for wellness clinics",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, restrict to specific origins
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(WorkflowEngineError)
async def handle_engine_error(request: Request, exc: WorkflowEngineError):
    status = ERROR_STATUS.get(exc.code, 500)
    logger.warning(f"{request.method} {request.url.path} -> {status} {exc.code}: {exc.message}")
    return JSONResponse(status_code=status, content=exc.to_dict())


# Include routers
app.include_router(patients_router)
app.include_router(workflow_router)
app.include_router(assessment_router)
app.include_router(iris_router)
app.include_router(report_router)
app.include_router(treatment_router)
app.include_router(reassessment_router)


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "intake_workflow"}


@app.get("/")
def root():
    """Root endpoint with API info."""
    return {
        "service": "Intake Workflow API",
        "version": "1.0.0",
        "governance": "All clinical decisions by licensed clinicians",
        "endpoints": {
            "patients": "/v1/patients",
            "workflow": "/v1/workflow",
            "assessments": "/v1/assessments",
            "iris": "/v1/iris",
            "reports": "/v1/reports",
            "treatment": "/v1/treatment",
            "reassessments": "/v1/reassessments",
        },
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=True,
    )
