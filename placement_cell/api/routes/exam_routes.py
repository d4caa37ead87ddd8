"""
Exam Routes

Officers (tpo/admin):
POST /exams - Create exam
POST /exams/{exam_id}/sections - Add section
POST /exams/{exam_id}/sections/{section_id}/questions - Add question
PUT /exams/{exam_id}/status - Change status
PUT /exams/{exam_id}/activate - Open the exam now
DELETE /exams/{exam_id} - Delete exam with its attempts and logs
GET /exams/{exam_id}/results - Finished attempts, best first
GET /exams/{exam_id}/stats - Attempt and event counts

Students:
GET /exams/my/results - Own finished attempts
POST /exams/{exam_id}/register - Register
POST /exams/{exam_id}/start - Start or resume attempt
GET /exams/{exam_id}/questions - Questions without answers
PUT /exams/{exam_id}/progress - Save answers so far
POST /exams/{exam_id}/submit - Submit and score
GET /exams/{exam_id}/result - Latest result

Both:
GET /exams - List exams
GET /exams/{exam_id} - Exam details
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from placement_cell.core.auth import (
    OFFICER_ROLES, get_current_officer, get_current_student, get_current_user,
)
from placement_cell.core.config import get_settings
from placement_cell.core.errors import NotFoundError
from placement_cell.exam.attempts import get_attempt_manager
from placement_cell.exam.eligibility import assert_eligible
from placement_cell.schemas.schemas import (
    STUDENT_VISIBLE_STATUSES,
    AttemptSummary, ErrorResponse, ExamActivate, ExamCreate, ExamListResponse, ExamResultResponse,
    ExamStatsResponse, ExamStatusUpdate, ExamSummary, MessageResponse, ProgressResponse,
    QuestionCreate, RegistrationResponse, SectionCreate, StartResponse, SubmitRequest,
    SubmitResponse,
)
from placement_cell.services.attempt_service import attempt_summary, get_attempt_service
from placement_cell.services.audit_log_service import get_audit_log_service
from placement_cell.services.exam_service import exam_summary, exam_to_dict, get_exam_service
from placement_cell.services.student_service import get_student_service

router = APIRouter(
    prefix="/exams",
    tags=["Exams"],
    responses={code: {"model": ErrorResponse} for code in (400, 403, 404, 409)}
)


def _is_officer(user: dict) -> bool:
    return user["role"] in OFFICER_ROLES


# Declared before the /{exam_id} routes so "my" is not taken for an exam id
@router.get("/my/results", response_model=List[AttemptSummary])
async def my_results(student: dict = Depends(get_current_student)):
    """Finished attempts of the current student across all exams."""
    return get_attempt_manager().list_student_results(student["student_id"])


# ============================================================
# OFFICER - EXAM DEFINITIONS
# ============================================================

@router.post("", status_code=201)
async def create_exam(data: ExamCreate, officer: dict = Depends(get_current_officer)):
    """Create a Draft exam. Publish it with PUT /exams/{id}/status."""
    exam = get_exam_service().create(data, created_by=officer["user_id"])
    get_audit_log_service().log_activity(
        "created_exam", f"Created exam: {data.title}",
        user_id=officer["user_id"], user_type="TPO", resource="Exam", resource_id=str(exam["_id"])
    )
    return exam_to_dict(exam, include_answers=True)


@router.post("/{exam_id}/sections", status_code=201)
async def add_section(exam_id: str, section: SectionCreate, officer: dict = Depends(get_current_officer)):
    """Add a section. Names are unique within an exam."""
    return get_exam_service().add_section(exam_id, section)


@router.post("/{exam_id}/sections/{section_id}/questions", status_code=201)
async def add_question(
    exam_id: str,
    section_id: str,
    question: QuestionCreate,
    officer: dict = Depends(get_current_officer)
):
    """Add a question to a section. Exam total marks are recomputed."""
    return get_exam_service().add_question(exam_id, section_id, question)


@router.put("/{exam_id}/status", response_model=MessageResponse)
async def update_status(exam_id: str, data: ExamStatusUpdate, officer: dict = Depends(get_current_officer)):
    exam = get_exam_service().update_status(exam_id, data.status)
    get_audit_log_service().log_activity(
        "updated_exam_status", f"Exam '{exam.get('title')}' is now {data.status.value}",
        user_id=officer["user_id"], user_type="TPO", resource="Exam", resource_id=str(exam["_id"])
    )
    return MessageResponse(message=f"Exam status updated to {data.status.value}")


@router.put("/{exam_id}/activate")
async def activate_exam(
    exam_id: str,
    data: Optional[ExamActivate] = None,
    officer: dict = Depends(get_current_officer)
):
    """Mark the exam Active. Missing start/end dates become now and now + hours."""
    hours = (data.hours if data else None) or get_settings().exam_activation_hours
    exam = get_exam_service().activate(exam_id, hours)
    get_audit_log_service().log_activity(
        "activated_exam", f"Activated exam: {exam.get('title')}",
        user_id=officer["user_id"], user_type="TPO", resource="Exam", resource_id=str(exam["_id"])
    )
    return exam_summary(exam)


@router.delete("/{exam_id}", response_model=MessageResponse)
async def delete_exam(exam_id: str, officer: dict = Depends(get_current_officer)):
    """Delete exam, its attempts and its exam logs."""
    exam = get_exam_service().delete(exam_id)
    exam_key = str(exam["_id"])
    attempts = get_attempt_service().delete_for_exam(exam_key)
    audit = get_audit_log_service()
    audit.delete_exam_events(exam_key)
    audit.log_activity(
        "deleted_exam", f"Deleted exam: {exam.get('title')} ({attempts} attempts)",
        user_id=officer["user_id"], user_type="TPO", resource="Exam", resource_id=exam_key
    )
    return MessageResponse(message="Exam deleted successfully")


@router.get("/{exam_id}/results", response_model=List[AttemptSummary])
async def exam_results(exam_id: str, officer: dict = Depends(get_current_officer)):
    """All finished attempts for an exam, highest percentage first."""
    exam = get_exam_service().get(exam_id)
    return [attempt_summary(a) for a in get_attempt_service().list_for_exam(str(exam["_id"]))]


@router.get("/{exam_id}/stats", response_model=ExamStatsResponse)
async def exam_stats(exam_id: str, officer: dict = Depends(get_current_officer)):
    exam = get_exam_service().get(exam_id)
    exam_key = str(exam["_id"])
    attempts = get_attempt_service().list_for_exam(exam_key)
    percentages = [a.get("percentage_score") or 0 for a in attempts]
    return ExamStatsResponse(
        exam_id=exam_key,
        registered=len(exam.get("registered_students") or []),
        finished_attempts=len(attempts),
        passed=sum(1 for a in attempts if a.get("passed")),
        average_percentage=round(sum(percentages) / len(percentages), 2) if percentages else 0.0,
        events=get_audit_log_service().exam_stats(exam_key),
    )


# ============================================================
# SHARED - LISTING AND DETAILS
# ============================================================

@router.get("", response_model=ExamListResponse)
async def list_exams(
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=50),
    status: Optional[str] = Query(None),
    type: Optional[str] = Query(None, description="Exam type, e.g. Aptitude"),
    start_date: Optional[datetime] = Query(None, description="scheduled_for from"),
    end_date: Optional[datetime] = Query(None, description="scheduled_for to"),
    user: dict = Depends(get_current_user)
):
    """
    List exams, newest scheduled first.
    Students only see Published/Active exams open to their department.
    """
    student = None
    if not _is_officer(user):
        student = get_student_service().get(user["user_id"]) or {"student_id": user["user_id"]}

    exams, total = get_exam_service().list(
        status=status, exam_type=type,
        scheduled_from=start_date, scheduled_to=end_date,
        student=student, page=page, page_size=page_size
    )
    return ExamListResponse(
        exams=[ExamSummary(**exam_summary(e)) for e in exams],
        total=total, page=page, page_size=page_size
    )


@router.get("/{exam_id}")
async def get_exam(exam_id: str, user: dict = Depends(get_current_user)):
    """Exam details. Officers see answer keys and registrations."""
    exam = get_exam_service().get(exam_id)
    if _is_officer(user):
        return exam_to_dict(exam, include_answers=True)

    if exam.get("status") not in STUDENT_VISIBLE_STATUSES:
        raise NotFoundError("Exam not found")
    profile = get_student_service().get(user["user_id"])
    if not profile:
        raise HTTPException(status_code=404, detail="Student profile not found. Create profile first.")
    assert_eligible(exam, profile)
    return exam_to_dict(exam)


# ============================================================
# STUDENT - ATTEMPTS
# ============================================================

@router.post("/{exam_id}/register", response_model=RegistrationResponse)
async def register_for_exam(exam_id: str, student: dict = Depends(get_current_student)):
    return get_attempt_manager().register(exam_id, student)


@router.post("/{exam_id}/start", response_model=StartResponse)
async def start_exam(exam_id: str, student: dict = Depends(get_current_student)):
    """
    Start the exam, or resume the live attempt.
    A second call while the attempt is live returns the same attempt.
    """
    return get_attempt_manager().start(exam_id, student)


@router.get("/{exam_id}/questions")
async def exam_questions(exam_id: str, student: dict = Depends(get_current_student)):
    return get_attempt_manager().questions(exam_id, student)


@router.put("/{exam_id}/progress", response_model=ProgressResponse)
async def save_progress(exam_id: str, data: SubmitRequest, student: dict = Depends(get_current_student)):
    return get_attempt_manager().save_progress(exam_id, student, data.responses)


@router.post("/{exam_id}/submit", response_model=SubmitResponse)
async def submit_exam(exam_id: str, data: SubmitRequest, student: dict = Depends(get_current_student)):
    return get_attempt_manager().submit(exam_id, student, data.responses)


@router.get("/{exam_id}/result", response_model=ExamResultResponse)
async def exam_result(exam_id: str, student: dict = Depends(get_current_student)):
    return get_attempt_manager().get_result(exam_id, student)
