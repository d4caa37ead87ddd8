"""
Pydantic Schemas - Request/Response Validation

All API request and response schemas in one file for simplicity.
"""

from pydantic import AliasChoices, BaseModel, EmailStr, Field, field_validator, model_validator
from typing import Optional, List, Any, Dict
from datetime import datetime
from enum import Enum

from placement_cell.utils.dates import to_naive_utc


# ============================================================
# ENUMS
# ============================================================

class UserRole(str, Enum):
    student = "student"
    tpo = "tpo"
    admin = "admin"


class ExamType(str, Enum):
    aptitude = "Aptitude"
    technical = "Technical"
    verbal = "Verbal"
    coding = "Coding"
    mock_interview = "Mock Interview"
    personality = "Personality"


class ExamStatus(str, Enum):
    draft = "Draft"
    published = "Published"
    scheduled = "Scheduled"
    active = "Active"
    ongoing = "Ongoing"
    completed = "Completed"
    cancelled = "Cancelled"


class QuestionType(str, Enum):
    mcq = "MCQ"
    multi_select = "MultiSelect"
    true_false = "TrueFalse"
    short_answer = "ShortAnswer"
    coding = "Coding"


class Difficulty(str, Enum):
    easy = "Easy"
    medium = "Medium"
    hard = "Hard"


class AttemptStatus(str, Enum):
    in_progress = "InProgress"
    completed = "Completed"
    timed_out = "TimedOut"
    abandoned = "Abandoned"


class RegistrationStatus(str, Enum):
    registered = "registered"
    appeared = "appeared"
    absent = "absent"


# Statuses an officer may set by hand through PUT /exams/{id}/status
SETTABLE_EXAM_STATUSES = {
    ExamStatus.draft, ExamStatus.published, ExamStatus.active,
    ExamStatus.completed, ExamStatus.cancelled
}

# Exams students may see in listings / details
STUDENT_VISIBLE_STATUSES = [ExamStatus.published.value, ExamStatus.active.value]

CHOICE_QUESTION_TYPES = {QuestionType.mcq, QuestionType.multi_select}


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict)):
        return len(value) == 0
    return False


# ============================================================
# EXAM DEFINITION SCHEMAS
# ============================================================

class QuestionCreate(BaseModel):
    type: QuestionType = QuestionType.mcq
    question: str = Field(..., min_length=1)
    code: Optional[str] = ""
    options: List[str] = []
    correct_answer: Any = None
    explanation: Optional[str] = ""
    marks: float = Field(1, ge=0)
    negative_marks: float = Field(0, ge=0)
    difficulty: Difficulty = Difficulty.medium
    tags: List[str] = []

    @field_validator("type", mode="before")
    @classmethod
    def accept_legacy_type_names(cls, value):
        # Older question files spell it "MultipleSelect"
        if value == "MultipleSelect":
            return QuestionType.multi_select.value
        return value

    @model_validator(mode="after")
    def check_answer_key(self):
        if _is_blank(self.correct_answer):
            raise ValueError("Please provide the correct answer")
        if self.type in CHOICE_QUESTION_TYPES and len(self.options) < 2:
            raise ValueError("Please provide at least two options")
        if self.type == QuestionType.true_false and not self.options:
            self.options = ["True", "False"]
        return self


class SectionCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = ""
    duration: Optional[int] = Field(None, ge=1)
    questions: List[QuestionCreate] = []


class EligibilityCriteria(BaseModel):
    departments: List[str] = []
    branches: List[str] = []
    semesters: List[str] = []
    min_cgpa: Optional[float] = Field(None, ge=0, le=10)
    min_percentage: Optional[float] = Field(None, ge=0, le=100)
    max_backlogs: Optional[int] = Field(None, ge=0)
    batch: Optional[str] = None

    @field_validator("semesters", mode="before")
    @classmethod
    def semesters_as_strings(cls, value):
        if isinstance(value, list):
            return [str(v) for v in value]
        return value


class ExamCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = ""
    type: ExamType
    duration: int = Field(..., ge=1, description="Minutes")
    total_marks: Optional[float] = Field(None, ge=0)
    passing_marks: Optional[float] = Field(None, ge=0)
    passing_percentage: Optional[float] = Field(None, ge=0, le=100)
    scheduled_for: datetime
    registration_deadline: datetime
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    time_per_question: int = Field(60, ge=1, description="Seconds")
    show_results: bool = True
    allow_reattempt: bool = False
    randomize_questions: bool = True
    eligibility: EligibilityCriteria = Field(default_factory=EligibilityCriteria)
    instructions: Optional[str] = ""
    sections: List[SectionCreate] = []
    # Legacy flat question list, wrapped into a default section
    questions: List[QuestionCreate] = []

    @field_validator("scheduled_for", "registration_deadline", "start_date", "end_date")
    @classmethod
    def naive_utc(cls, value):
        return to_naive_utc(value)

    @model_validator(mode="after")
    def check_sections(self):
        if not self.sections and self.questions:
            self.sections = [SectionCreate(
                name="Default Section",
                description="Auto-generated section containing all questions",
                questions=self.questions
            )]
            self.questions = []
        if not self.sections or any(not s.questions for s in self.sections):
            raise ValueError("Please provide at least one question in a section")
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must be after start_date")
        return self


class ExamStatusUpdate(BaseModel):
    status: ExamStatus

    @field_validator("status")
    @classmethod
    def settable(cls, value):
        if value not in SETTABLE_EXAM_STATUSES:
            raise ValueError("Please provide a valid status")
        return value


class ExamActivate(BaseModel):
    hours: Optional[int] = Field(None, ge=1, le=24 * 30, description="Window length when dates are missing")


class ExamSummary(BaseModel):
    id: str
    title: str
    description: Optional[str] = ""
    type: str
    duration: int
    total_marks: float
    passing_percentage: Optional[float] = None
    scheduled_for: Optional[datetime] = None
    registration_deadline: Optional[datetime] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    status: str
    availability: str
    total_questions: int
    registered_count: int


class ExamListResponse(BaseModel):
    exams: List[ExamSummary]
    total: int
    page: int
    page_size: int


# ============================================================
# ATTEMPT SCHEMAS
# ============================================================

class ResponseItem(BaseModel):
    question_id: str = Field(..., validation_alias=AliasChoices("question_id", "questionId"))
    answer: Any = None


class SubmitRequest(BaseModel):
    # The exam page has historically posted "answers"; accept both names
    responses: List[ResponseItem] = Field(..., validation_alias=AliasChoices("responses", "answers"))


class RegistrationResponse(BaseModel):
    message: str
    success: bool = True
    exam_date: Optional[datetime] = None


class StartResponse(BaseModel):
    message: str
    attempt_id: str
    resumed: bool
    start_time: datetime
    remaining_time: int
    exam: Dict[str, Any]
    responses: List[Dict[str, Any]] = []


class ProgressResponse(BaseModel):
    message: str = "Progress saved"
    saved: int
    remaining_time: int


class SubmitResponse(BaseModel):
    message: str
    score: float
    max_score: float
    percentage: float
    passed: bool
    passing_percentage: float
    exam: Dict[str, Any]


class SectionResult(BaseModel):
    name: str
    score: float
    max_score: float
    correct: int
    incorrect: int
    attempted: int
    responses: List[Dict[str, Any]]


class ExamResultResponse(BaseModel):
    attempt_id: str
    exam: Dict[str, Any]
    student_id: str
    status: str
    start_time: datetime
    end_time: Optional[datetime] = None
    duration: int
    score: float
    max_score: float
    percentage: float
    passed: bool
    sections: List[SectionResult]
    responses: List[Dict[str, Any]]


class AttemptSummary(BaseModel):
    attempt_id: str
    exam_id: str
    exam_title: Optional[str] = None
    student_id: str
    status: str
    score: float
    max_score: float
    percentage: float
    passed: bool
    start_time: datetime
    end_time: Optional[datetime] = None


class ExamStatsResponse(BaseModel):
    exam_id: str
    registered: int
    finished_attempts: int
    passed: int
    average_percentage: float
    events: Dict[str, int]


# ============================================================
# STUDENT SCHEMAS
# ============================================================

class StudentProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    email: Optional[EmailStr] = None
    department: Optional[str] = None
    branch: Optional[str] = None
    semester: Optional[str] = None
    cgpa: Optional[float] = Field(None, ge=0, le=10)
    percentage: Optional[float] = Field(None, ge=0, le=100)
    backlogs: Optional[int] = Field(None, ge=0)
    batch: Optional[str] = None

    @field_validator("semester", "batch", mode="before")
    @classmethod
    def as_string(cls, value):
        return str(value) if value is not None else value


class StudentProfileResponse(BaseModel):
    student_id: str
    name: Optional[str] = None
    email: Optional[str] = None
    department: Optional[str] = None
    branch: Optional[str] = None
    semester: Optional[str] = None
    cgpa: Optional[float] = None
    percentage: Optional[float] = None
    backlogs: Optional[int] = None
    batch: Optional[str] = None


# ============================================================
# GENERIC SCHEMAS
# ============================================================

class MessageResponse(BaseModel):
    message: str
    success: bool = True


class ErrorResponse(BaseModel):
    detail: str
    code: Optional[str] = None
