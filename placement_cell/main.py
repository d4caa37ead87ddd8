"""
Placement Cell Exam Engine - Main Application

FastAPI backend with:
- MongoDB for exams, attempts, profiles and audit logs
- JWT authentication (tokens issued by the placement portal)

Run: uvicorn placement_cell.main:app --reload
"""

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError

from placement_cell import __version__
from placement_cell.api import api_router
from placement_cell.core.config import get_settings
from placement_cell.core.errors import ExamError
from placement_cell.core.logging_config import configure_logging
from placement_cell.db.mongodb import init_mongo_indexes, test_mongo_connection
from placement_cell.services.audit_log_service import get_audit_log_service

settings = get_settings()
configure_logging(settings.log_level)

logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Placement Cell Exam Engine",
    description="""
    Online aptitude and technical exams for the Training & Placement Cell.

    ## Features
    - **Officers**: Create exams with sections and questions, publish, activate, view results
    - **Students**: Register, start or resume an attempt, save progress, submit, view result
    - **Scoring**: MCQ, multi-select partial credit, true/false, short answer; negative marking
    - **Timing**: Exam windows and per-attempt deadlines, expired attempts time out on next access
    """,
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    debug=settings.debug
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(api_router, prefix="/api")


@app.exception_handler(ExamError)
async def exam_error_handler(request: Request, exc: ExamError):
    """Rejected operations: {"detail": reason, "code": code}."""
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(PyMongoError)
async def mongo_error_handler(request: Request, exc: PyMongoError):
    logger.exception("Database error on %s %s", request.method, request.url.path)
    get_audit_log_service().log_error(
        "Database error", exc, path=request.url.path, metadata={"method": request.method}
    )
    return JSONResponse(
        status_code=503,
        content={"detail": "Database unavailable, please try again", "code": "persistence_error"}
    )


# Startup event
@app.on_event("startup")
async def startup_event():
    """Initialize MongoDB indexes on startup."""
    try:
        init_mongo_indexes()
        app.state.indexes_ready = True
    except PyMongoError as e:
        # Without one_live_attempt_per_student concurrent starts can create two attempts
        app.state.indexes_ready = False
        logger.error("MongoDB index initialization failed: %s", e)


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check with database connectivity and index state."""
    mongo_ok = test_mongo_connection()
    indexes_ok = getattr(app.state, "indexes_ready", False)
    return {
        "status": "healthy" if mongo_ok and indexes_ok else "degraded",
        "version": __version__,
        "mongodb": "connected" if mongo_ok else "disconnected",
        "indexes": "ready" if indexes_ok else "missing"
    }
