"""
Attempt State Machine

    NotStarted --start--> InProgress --submit-----------> Completed
                              |
                              +--deadline passed (lazy)--> TimedOut

Terminal states are never written again. There is no scheduler: an
attempt whose deadline (start_time + exam duration) has passed is timed
out by whichever call touches it next (start, questions, progress,
submit, result). A timed-out attempt is scored on the responses saved
through save_progress.
"""

import logging
import random
from datetime import datetime
from typing import Any, List, Optional

from placement_cell.core.config import Settings, get_settings
from placement_cell.core.errors import NotFoundError, StateError, ValidationError
from placement_cell.exam.eligibility import (
    RESUME, assert_eligible, check_start, find_registration,
)
from placement_cell.exam.scoring import (
    find_question, index_responses, is_passed, passing_percentage,
    score_exam, section_breakdown, unknown_question_ids,
)
from placement_cell.exam.timing import attempt_deadline, check_window, is_attempt_expired
from placement_cell.schemas.schemas import AttemptStatus
from placement_cell.services.attempt_service import AttemptService, attempt_summary
from placement_cell.services.audit_log_service import AuditLogService
from placement_cell.services.exam_service import (
    CLOSED_STATUSES, ExamService, public_sections, strip_answers,
)
from placement_cell.utils.dates import minutes_between, minutes_remaining, utcnow

logger = logging.getLogger(__name__)


class ExamAttemptManager:
    """
    Externally visible exam operations for students:
    register, start, questions, save_progress, submit, get_result.

    `student` arguments are profile dicts as returned by
    StudentService.get() (must contain "student_id").
    """

    def __init__(
        self,
        exam_service: ExamService = None,
        attempt_service: AttemptService = None,
        audit: AuditLogService = None,
        settings: Settings = None,
        rng: random.Random = None
    ):
        self.exams = exam_service or ExamService()
        self.attempts = attempt_service or AttemptService()
        self.audit = audit or AuditLogService()
        self.settings = settings or get_settings()
        self.rng = rng or random.Random()

    # ------------------------------------------------------------
    # Guards
    # ------------------------------------------------------------

    def _ensure_open(self, exam: dict) -> None:
        status = exam.get("status")
        if status in CLOSED_STATUSES:
            raise StateError(f"Exam is not open ({status})", code="exam_closed", status_code=400)

    def _ensure_window(self, exam: dict, now: datetime) -> None:
        check = check_window(
            exam, now,
            force_active=self.settings.exam_force_active,
            default_duration=self.settings.exam_default_duration
        )
        if not check.active:
            raise StateError(check.reason, code="not_active", status_code=400)

    def _deadline(self, attempt: dict, exam: dict) -> datetime:
        return attempt_deadline(attempt, exam, self.settings.exam_default_duration)

    def _is_expired(self, attempt: dict, exam: dict, now: datetime) -> bool:
        return is_attempt_expired(attempt, exam, now, self.settings.exam_default_duration)

    def _validate_responses(self, exam: dict, responses: Any) -> List[dict]:
        if responses is None or not isinstance(responses, list):
            raise ValidationError(
                "Invalid response format. Please provide an array of responses",
                code="invalid_responses"
            )
        for response in responses:
            has_id = (
                response.get("question_id") is not None if isinstance(response, dict)
                else getattr(response, "question_id", None) is not None
            )
            if not has_id:
                raise ValidationError(
                    "Invalid response format. Each response needs a question_id and an answer",
                    code="invalid_responses"
                )
        items = [{"question_id": qid, "answer": answer} for qid, answer in index_responses(responses).items()]
        unknown = unknown_question_ids(exam, items)
        if unknown:
            raise ValidationError(
                f"Invalid question IDs in responses: {', '.join(unknown)}",
                code="invalid_responses"
            )
        return items

    # ------------------------------------------------------------
    # Content
    # ------------------------------------------------------------

    def exam_content(self, exam: dict) -> dict:
        """Exam as shown to a student: no answer keys, shuffled per request when configured."""
        sections = public_sections(exam)
        if exam.get("randomize_questions"):
            for section in sections:
                self.rng.shuffle(section["questions"])
        return {
            "id": str(exam["_id"]),
            "title": exam.get("title"),
            "description": exam.get("description") or "",
            "type": exam.get("type"),
            "duration": exam.get("duration"),
            "instructions": exam.get("instructions") or "",
            "time_per_question": exam.get("time_per_question"),
            "sections": sections,
        }

    # ------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------

    def _time_out(self, exam: dict, attempt: dict) -> bool:
        """InProgress -> TimedOut, scoring whatever was saved. end_time is the deadline."""
        sheet = score_exam(exam, attempt.get("responses") or [], self.settings.exam_negative_marking)
        end_time = self._deadline(attempt, exam)
        changed = self.attempts.finish(attempt["_id"], AttemptStatus.timed_out, {
            "end_time": end_time,
            "responses": sheet.responses_as_dicts(),
            "score": sheet.total_score,
            "max_score": sheet.max_score,
            "percentage_score": sheet.percentage_score,
            "passed": is_passed(sheet.percentage_score, exam),
            "duration": minutes_between(attempt["start_time"], end_time),
        })
        if changed:
            logger.info("Attempt %s timed out (deadline %s)", attempt["_id"], end_time)
            self.audit.log_exam_event(str(exam["_id"]), attempt["student_id"], "timeout",
                                      {"attempt_id": str(attempt["_id"]), "score": sheet.total_score})
        return changed

    def expire_if_stale(self, exam: dict, student_id: str, now: datetime) -> Optional[dict]:
        """Lazily time out the student's live attempt if its deadline passed. Returns the live attempt, if any."""
        attempt = self.attempts.find_in_progress(str(exam["_id"]), student_id)
        if attempt and self._is_expired(attempt, exam, now):
            self._time_out(exam, attempt)
            return None
        return attempt

    def register(self, exam_id: str, student: dict, now: Optional[datetime] = None) -> dict:
        now = now or utcnow()
        exam = self.exams.get(exam_id)
        student_id = student["student_id"]
        self._ensure_open(exam)

        deadline = exam.get("registration_deadline")
        if deadline and now > deadline:
            raise StateError("Registration deadline has passed", code="deadline_passed", status_code=400)

        assert_eligible(exam, student)

        if find_registration(exam, student_id) or not self.exams.register_student(exam["_id"], student_id, now):
            raise StateError("You are already registered for this exam", code="already_registered")

        self.audit.log_activity(
            "registered_for_exam", f"Registered for exam: {exam.get('title')}",
            user_id=student_id, user_type="Student", resource="Exam", resource_id=str(exam["_id"])
        )
        self.audit.log_exam_event(str(exam["_id"]), student_id, "register")
        return {"message": "Successfully registered for the exam", "exam_date": exam.get("scheduled_for")}

    def start(self, exam_id: str, student: dict, now: Optional[datetime] = None) -> dict:
        """
        Start or resume the student's attempt.

        Returns the answer-free exam content, the attempt's start time,
        remaining minutes, and (when resuming) the responses saved so far.
        """
        now = now or utcnow()
        exam = self.exams.get(exam_id)
        exam_key = str(exam["_id"])
        student_id = student["student_id"]
        self._ensure_open(exam)
        self._ensure_window(exam, now)

        existing = self.attempts.find_latest(exam_key, student_id)
        decision = check_start(exam, student, existing, now, self.settings.exam_default_duration)
        if decision.expire_existing:
            self._time_out(exam, existing)
        decision.raise_if_denied()

        if decision.action == RESUME:
            attempt, created = existing, False
        else:
            # Auto-registration is allowed on the start path only
            if self.exams.register_student(exam["_id"], student_id, now):
                logger.info("Auto-registered student %s for exam %s", student_id, exam_key)
            attempt, created = self.attempts.find_or_create_in_progress(
                exam_key, student_id, now, exam.get("title")
            )

        if created:
            self.audit.log_activity(
                "started", f"Started exam: {exam.get('title')}",
                user_id=student_id, user_type="Student", resource="Exam", resource_id=exam_key
            )
            self.audit.log_exam_event(exam_key, student_id, "start", {"attempt_id": str(attempt["_id"])})

        return {
            "message": "Exam started successfully" if created else "Continuing exam",
            "attempt_id": str(attempt["_id"]),
            "resumed": not created,
            "start_time": attempt["start_time"],
            "remaining_time": minutes_remaining(now, self._deadline(attempt, exam)),
            "exam": self.exam_content(exam),
            "responses": [] if created else list(attempt.get("responses") or []),
        }

    def questions(self, exam_id: str, student: dict, now: Optional[datetime] = None) -> List[dict]:
        """Flat list of answer-free questions (with section name). Auto-registers like start."""
        now = now or utcnow()
        exam = self.exams.get(exam_id)
        student_id = student["student_id"]
        self._ensure_open(exam)
        self._ensure_window(exam, now)
        assert_eligible(exam, student)

        self.exams.register_student(exam["_id"], student_id, now)
        self.expire_if_stale(exam, student_id, now)

        questions = [
            {**strip_answers(q), "section": section.get("name")}
            for section in exam.get("sections") or []
            for q in section.get("questions") or []
        ]
        if exam.get("randomize_questions"):
            self.rng.shuffle(questions)
        self.audit.log_exam_event(str(exam["_id"]), student_id, "view_questions")
        return questions

    def save_progress(self, exam_id: str, student: dict, responses: Any,
                      now: Optional[datetime] = None) -> dict:
        """Store raw answers on the live attempt. Later saves for the same question win."""
        now = now or utcnow()
        exam = self.exams.get(exam_id)
        student_id = student["student_id"]
        items = self._validate_responses(exam, responses)

        attempt = self.attempts.find_in_progress(str(exam["_id"]), student_id)
        if attempt is None:
            raise StateError("No active exam session found", code="no_active_session")
        if self._is_expired(attempt, exam, now):
            self._time_out(exam, attempt)
            raise StateError("Exam time has expired", code="time_expired")

        merged = index_responses(attempt.get("responses") or [])
        merged.update(index_responses(items))
        saved = [{"question_id": qid, "answer": answer} for qid, answer in merged.items()]
        if not self.attempts.save_responses(attempt["_id"], saved, now):
            raise StateError("No active exam session found", code="no_active_session")

        return {
            "saved": len(saved),
            "remaining_time": minutes_remaining(now, self._deadline(attempt, exam)),
        }

    def submit(self, exam_id: str, student: dict, responses: Any, now: Optional[datetime] = None) -> dict:
        """
        Score and complete the live attempt.

        Rejected when: responses are malformed or reference unknown
        questions, the student never registered, there is no live attempt
        (including a second submit), or the attempt's time is up.
        """
        now = now or utcnow()
        exam = self.exams.get(exam_id)
        exam_key = str(exam["_id"])
        student_id = student["student_id"]
        items = self._validate_responses(exam, responses)

        if not find_registration(exam, student_id):
            raise StateError("Not registered for this exam", code="not_registered")

        attempt = self.attempts.find_in_progress(exam_key, student_id)
        if attempt is None:
            latest = self.attempts.find_latest(exam_key, student_id)
            if latest and latest.get("status") == AttemptStatus.completed.value:
                raise StateError("You have already submitted this exam", code="already_completed")
            raise StateError("No active exam session found", code="no_active_session")

        if self._is_expired(attempt, exam, now):
            self._time_out(exam, attempt)
            raise StateError("Exam time has expired", code="time_expired")

        merged = index_responses(attempt.get("responses") or [])
        merged.update(index_responses(items))
        sheet = score_exam(
            exam,
            [{"question_id": qid, "answer": answer} for qid, answer in merged.items()],
            self.settings.exam_negative_marking
        )
        passed = is_passed(sheet.percentage_score, exam)

        completed = self.attempts.finish(attempt["_id"], AttemptStatus.completed, {
            "end_time": now,
            "responses": sheet.responses_as_dicts(),
            "score": sheet.total_score,
            "max_score": sheet.max_score,
            "percentage_score": sheet.percentage_score,
            "passed": passed,
            "duration": minutes_between(attempt["start_time"], now),
        })
        if not completed:
            # Lost the race against a concurrent submit
            raise StateError("You have already submitted this exam", code="already_completed")

        self.exams.mark_appeared(exam["_id"], student_id)
        logger.info(
            "Attempt %s submitted: %s/%s (%.2f%%)",
            attempt["_id"], sheet.total_score, sheet.max_score, sheet.percentage_score
        )
        self.audit.log_activity(
            "submitted", f"Submitted exam: {exam.get('title')}",
            user_id=student_id, user_type="Student", resource="Exam", resource_id=exam_key,
            status="success"
        )
        self.audit.log_exam_event(exam_key, student_id, "submit", {
            "attempt_id": str(attempt["_id"]), "score": sheet.total_score, "max_score": sheet.max_score
        })

        return {
            "message": "Exam submitted successfully",
            "score": sheet.total_score,
            "max_score": sheet.max_score,
            "percentage": round(sheet.percentage_score, 2),
            "passed": passed,
            "passing_percentage": passing_percentage(exam),
            "exam": {"id": exam_key, "title": exam.get("title")},
        }

    def get_result(self, exam_id: str, student: dict, now: Optional[datetime] = None) -> dict:
        """Most recent finished attempt with a per-section breakdown."""
        now = now or utcnow()
        exam = self.exams.get(exam_id)
        exam_key = str(exam["_id"])
        student_id = student["student_id"]

        self.expire_if_stale(exam, student_id, now)
        attempt = self.attempts.find_latest_result(exam_key, student_id)
        if attempt is None:
            raise NotFoundError("No completed exam result found")

        show_answers = exam.get("show_results", True)
        responses = []
        for response in attempt.get("responses") or []:
            found = find_question(exam, response.get("question_id"))
            question = None
            if found:
                section, q = found
                question = {
                    "text": q.get("question"),
                    "type": q.get("type"),
                    "options": q.get("options") or [],
                    "section_name": section.get("name"),
                }
                if show_answers:
                    question["correct_answer"] = q.get("correct_answer")
                    question["explanation"] = q.get("explanation")
            responses.append({**response, "question": question})

        end_time = attempt.get("end_time")
        percentage_score = attempt.get("percentage_score") or 0
        return {
            "attempt_id": str(attempt["_id"]),
            "exam": {
                "id": exam_key,
                "title": exam.get("title"),
                "description": exam.get("description") or "",
                "type": exam.get("type"),
                "passing_percentage": passing_percentage(exam),
            },
            "student_id": student_id,
            "status": attempt.get("status"),
            "start_time": attempt["start_time"],
            "end_time": end_time,
            "duration": minutes_between(attempt["start_time"], end_time) if end_time else 0,
            "score": attempt.get("score") or 0,
            "max_score": attempt.get("max_score") or 0,
            "percentage": round(percentage_score, 2),
            "passed": is_passed(percentage_score, exam),
            "sections": section_breakdown(exam, responses),
            "responses": responses,
        }

    def list_student_results(self, student_id: str) -> List[dict]:
        return [attempt_summary(a) for a in self.attempts.list_for_student(student_id)]


def get_attempt_manager() -> ExamAttemptManager:
    """Get exam attempt manager instance."""
    return ExamAttemptManager()
