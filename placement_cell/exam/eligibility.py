"""
Registration / Eligibility Gate

Eligibility filters come from exam["eligibility"]. A filter that is absent
or empty means "no restriction". Text filters (department, branch,
semester, batch) compare case-insensitively.

check_start() decides what a start request does with the student's latest
attempt, in this order:

1. student must be eligible
2. latest attempt Completed                 -> deny
3. latest attempt InProgress but past its deadline, or TimedOut/Abandoned
                                            -> expire it if still live, then
                                               allow a new one only when the
                                               exam allows reattempts
4. latest attempt InProgress and live       -> resume it
5. no attempt                               -> create one
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Type

from placement_cell.core.errors import EligibilityError, ExamError, StateError
from placement_cell.exam.timing import DEFAULT_DURATION_MINUTES, attempt_deadline
from placement_cell.schemas.schemas import AttemptStatus
from placement_cell.utils.dates import minutes_remaining


@dataclass
class EligibilityResult:
    eligible: bool
    reasons: List[str] = field(default_factory=list)


def _norm(value) -> str:
    return str(value).strip().casefold()


def _check_membership(allowed: List[str], value, label: str, reasons: List[str]) -> None:
    if not allowed:
        return
    if value is None or _norm(value) not in {_norm(a) for a in allowed}:
        reasons.append(f"Your {label} ({value if value is not None else 'not set'}) is not eligible for this exam")


def check_eligibility(exam: dict, student: dict) -> EligibilityResult:
    rules = exam.get("eligibility") or {}
    reasons: List[str] = []

    _check_membership(rules.get("departments"), student.get("department"), "department", reasons)
    _check_membership(rules.get("branches"), student.get("branch"), "branch", reasons)
    _check_membership(rules.get("semesters"), student.get("semester"), "semester", reasons)

    min_cgpa = rules.get("min_cgpa")
    if min_cgpa is not None:
        cgpa = student.get("cgpa")
        if cgpa is None or cgpa < min_cgpa:
            reasons.append(f"Minimum CGPA required is {min_cgpa} (yours: {cgpa if cgpa is not None else 'not set'})")

    min_percentage = rules.get("min_percentage")
    if min_percentage is not None:
        pct = student.get("percentage")
        if pct is None or pct < min_percentage:
            reasons.append(f"Minimum percentage required is {min_percentage} (yours: {pct if pct is not None else 'not set'})")

    max_backlogs = rules.get("max_backlogs")
    if max_backlogs is not None:
        backlogs = student.get("backlogs") or 0
        if backlogs > max_backlogs:
            reasons.append(f"At most {max_backlogs} backlogs allowed (yours: {backlogs})")

    batch = rules.get("batch")
    if batch:
        _check_membership([batch], student.get("batch"), "batch", reasons)

    return EligibilityResult(eligible=not reasons, reasons=reasons)


def assert_eligible(exam: dict, student: dict) -> None:
    result = check_eligibility(exam, student)
    if not result.eligible:
        raise EligibilityError("You are not eligible for this exam: " + "; ".join(result.reasons))


def find_registration(exam: dict, student_id: str) -> Optional[dict]:
    for entry in exam.get("registered_students") or []:
        if str(entry.get("student_id")) == str(student_id):
            return entry
    return None


# ------------------------------------------------------------
# Start decision
# ------------------------------------------------------------

CREATE = "create"
RESUME = "resume"
DENY = "deny"


@dataclass
class StartDecision:
    action: str
    expire_existing: bool = False
    remaining_minutes: Optional[int] = None
    reason: str = ""
    code: str = ""
    error_cls: Type[ExamError] = StateError

    @property
    def allowed(self) -> bool:
        return self.action != DENY

    def raise_if_denied(self) -> None:
        if not self.allowed:
            raise self.error_cls(self.reason, code=self.code)


def check_start(
    exam: dict,
    student: dict,
    existing_attempt: Optional[dict],
    now: datetime,
    default_duration: int = DEFAULT_DURATION_MINUTES
) -> StartDecision:
    """
    Decide how a start request proceeds. Pure: the caller performs the
    side effects (expiring the stale attempt, creating the new one).
    """
    eligibility = check_eligibility(exam, student)
    if not eligibility.eligible:
        return StartDecision(
            DENY, reason="You are not eligible for this exam: " + "; ".join(eligibility.reasons),
            code="not_eligible", error_cls=EligibilityError
        )

    if existing_attempt is None:
        return StartDecision(CREATE)

    status = existing_attempt.get("status")
    if status == AttemptStatus.completed.value:
        return StartDecision(DENY, reason="You have already completed this exam", code="already_completed")

    expire = False
    if status == AttemptStatus.in_progress.value:
        deadline = attempt_deadline(existing_attempt, exam, default_duration)
        if now <= deadline:
            return StartDecision(RESUME, remaining_minutes=minutes_remaining(now, deadline))
        expire = True

    if not exam.get("allow_reattempt"):
        return StartDecision(
            DENY, expire_existing=expire,
            reason="Your previous attempt has expired and multiple attempts are not allowed",
            code="reattempt_not_allowed"
        )
    return StartDecision(CREATE, expire_existing=expire)
