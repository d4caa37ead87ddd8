"""
Exam engine errors.

Every rejected operation raises one of these with a human-readable reason
that the frontend shows as-is. main.py turns them into JSON responses:

    {"detail": "<reason>", "code": "<code>"}
"""


class ExamError(Exception):
    """Base class for all client-facing exam engine errors."""

    status_code: int = 400
    code: str = "exam_error"

    def __init__(self, message: str, code: str = None, status_code: int = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict:
        return {"detail": self.message, "code": self.code}


class ValidationError(ExamError):
    """Malformed input (missing responses array, unknown question id, ...)."""
    status_code = 400
    code = "invalid_request"


class NotFoundError(ExamError):
    """Exam, attempt or result does not exist."""
    status_code = 404
    code = "not_found"


class StateError(ExamError):
    """Requested transition is not allowed in the attempt's current state."""
    status_code = 409
    code = "invalid_state"


class EligibilityError(ExamError):
    """Student does not meet the exam's eligibility criteria."""
    status_code = 403
    code = "not_eligible"


class PersistenceError(ExamError):
    """Data store failure on a primary write path."""
    status_code = 503
    code = "persistence_error"
