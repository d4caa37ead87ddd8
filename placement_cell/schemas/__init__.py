"""
Schemas module - Request/Response schemas for API endpoints.

Difference from services:
- Services: Internal data access (raw MongoDB documents as dicts)
- Schemas: API contract (what client sends/receives)
"""

from placement_cell.schemas.schemas import (
    AttemptStatus,
    ExamStatus,
    QuestionType,
    RegistrationStatus,
    UserRole,
)

__all__ = [
    "AttemptStatus",
    "ExamStatus",
    "QuestionType",
    "RegistrationStatus",
    "UserRole",
]
