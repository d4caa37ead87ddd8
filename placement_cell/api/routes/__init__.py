"""
API Routes - Combines all route modules into single router.
"""

from fastapi import APIRouter

from placement_cell.api.routes.exam_routes import router as exam_router
from placement_cell.api.routes.student_routes import router as student_router

# Main API router
api_router = APIRouter()

# Include all sub-routers
api_router.include_router(exam_router)
api_router.include_router(student_router)
