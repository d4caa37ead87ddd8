"""
Exam Definition Store - CRUD over the `exams` collection.

Document layout:
{
    "_id": ObjectId,
    "title": "Aptitude Round 1",
    "type": "Aptitude",
    "duration": 60,                      # minutes
    "total_marks": 40, "passing_marks": 16, "passing_percentage": 40,
    "scheduled_for": datetime, "registration_deadline": datetime,
    "start_date": datetime | None, "end_date": datetime | None,
    "eligibility": {"departments": [...], "min_cgpa": 6.5, ...},
    "sections": [{
        "section_id": "...", "name": "Quant", "duration": None,
        "questions": [{"question_id": "...", "type": "MCQ", "question": "...",
                       "options": [...], "correct_answer": "...", "marks": 1, ...}]
    }],
    "registered_students": [{"student_id": "...", "registered_at": datetime, "status": "registered"}],
    "status": "Draft"
}
"""

import logging
import re
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from bson import ObjectId
from pymongo import DESCENDING, ReturnDocument
from pymongo.collection import Collection

from placement_cell.core.errors import NotFoundError, StateError
from placement_cell.db.mongodb import get_collection, COLLECTIONS
from placement_cell.exam.scoring import iter_questions, question_marks
from placement_cell.exam.timing import exam_status
from placement_cell.schemas.schemas import (
    STUDENT_VISIBLE_STATUSES, ExamCreate, ExamStatus, QuestionCreate, RegistrationStatus, SectionCreate,
)
from placement_cell.utils.dates import utcnow
from placement_cell.utils.documents import new_id, parse_object_id

logger = logging.getLogger(__name__)

# Fields never sent to a student before the attempt is over
ANSWER_FIELDS = ("correct_answer", "explanation")

# Exams in these states are not open for registration or attempts
CLOSED_STATUSES = {ExamStatus.draft.value, ExamStatus.cancelled.value, ExamStatus.completed.value}


# ============================================================
# Document builders
# ============================================================

def build_question(question: QuestionCreate) -> dict:
    doc = question.model_dump(mode="json")
    doc["question_id"] = new_id()
    return doc


def build_section(section: SectionCreate) -> dict:
    return {
        "section_id": new_id(),
        "name": section.name,
        "description": section.description or "",
        "duration": section.duration,
        "questions": [build_question(q) for q in section.questions],
    }


def sum_question_marks(exam: dict) -> float:
    return sum(question_marks(q) for _, q in iter_questions(exam))


def count_questions(exam: dict) -> int:
    return sum(1 for _ in iter_questions(exam))


def strip_answers(question: dict) -> dict:
    return {k: v for k, v in question.items() if k not in ANSWER_FIELDS}


def public_sections(exam: dict) -> List[dict]:
    """Sections with answer keys removed."""
    return [
        {**section, "questions": [strip_answers(q) for q in section.get("questions") or []]}
        for section in exam.get("sections") or []
    ]


def exam_to_dict(exam: dict, include_answers: bool = False) -> dict:
    """Serialize an exam document for the API."""
    out = {k: v for k, v in exam.items() if k not in ("_id", "sections", "registered_students")}
    out["id"] = str(exam["_id"])
    out["sections"] = (exam.get("sections") or []) if include_answers else public_sections(exam)
    out["total_questions"] = count_questions(exam)
    out["registered_count"] = len(exam.get("registered_students") or [])
    if include_answers:
        out["registered_students"] = exam.get("registered_students") or []
    return out


def exam_summary(exam: dict, now: Optional[datetime] = None) -> dict:
    """Listing view. `availability` is the timing status at `now` (Scheduled/Active/Expired)."""
    return {
        "id": str(exam["_id"]),
        "title": exam.get("title"),
        "description": exam.get("description") or "",
        "type": exam.get("type"),
        "duration": exam.get("duration"),
        "total_marks": exam.get("total_marks") or 0,
        "passing_percentage": exam.get("passing_percentage"),
        "scheduled_for": exam.get("scheduled_for"),
        "registration_deadline": exam.get("registration_deadline"),
        "start_date": exam.get("start_date"),
        "end_date": exam.get("end_date"),
        "status": exam.get("status"),
        "availability": exam_status(exam, now or utcnow()).value,
        "total_questions": count_questions(exam),
        "registered_count": len(exam.get("registered_students") or []),
    }


# ============================================================
# EXAMS COLLECTION
# ============================================================

class ExamService:
    """
    Handles exam definitions: creation by placement officers, section and
    question appends, status changes and student registrations.
    """

    def __init__(self):
        self.collection: Collection = get_collection(COLLECTIONS["exams"])

    def create(self, data: ExamCreate, created_by: str) -> dict:
        """
        Insert a new exam. total_marks defaults to the sum of question
        marks; passing marks/percentage are derived from each other when
        only one is given.
        """
        now = utcnow()
        doc = data.model_dump(exclude={"sections", "questions"})
        doc["type"] = data.type.value
        doc["sections"] = [build_section(s) for s in data.sections]

        question_total = sum_question_marks(doc)
        if doc.get("total_marks") is None:
            doc["total_marks"] = question_total
        elif doc["total_marks"] != question_total:
            logger.warning(
                "Exam '%s' declares total_marks=%s but questions add up to %s; scoring uses the question sum",
                data.title, doc["total_marks"], question_total
            )
        total = doc["total_marks"]
        if doc.get("passing_percentage") is not None and doc.get("passing_marks") is None:
            doc["passing_marks"] = round(doc["passing_percentage"] / 100 * total)
        elif doc.get("passing_marks") is not None and doc.get("passing_percentage") is None and total:
            doc["passing_percentage"] = doc["passing_marks"] / total * 100

        doc.update({
            "registered_students": [],
            "status": ExamStatus.draft.value,
            "created_by": created_by,
            "created_at": now,
            "updated_at": now,
        })
        result = self.collection.insert_one(doc)
        doc["_id"] = result.inserted_id
        logger.info("Created exam %s '%s' with %d questions", doc["_id"], data.title, count_questions(doc))
        return doc

    def find(self, exam_id: str) -> Optional[dict]:
        return self.collection.find_one({"_id": parse_object_id(exam_id)})

    def get(self, exam_id: str) -> dict:
        """Fetch exam or raise NotFoundError."""
        exam = self.find(exam_id)
        if not exam:
            raise NotFoundError("Exam not found")
        return exam

    def list(
        self,
        status: Optional[str] = None,
        exam_type: Optional[str] = None,
        scheduled_from: Optional[datetime] = None,
        scheduled_to: Optional[datetime] = None,
        student: Optional[dict] = None,
        page: int = 1,
        page_size: int = 10
    ) -> Tuple[List[dict], int]:
        """
        List exams newest-scheduled first.
        When `student` is given only Published/Active exams open to the
        student's department are returned.
        """
        query: Dict[str, Any] = {}
        if status:
            query["status"] = status
        if exam_type:
            query["type"] = exam_type
        scheduled: Dict[str, datetime] = {}
        if scheduled_from:
            scheduled["$gte"] = scheduled_from
        if scheduled_to:
            scheduled["$lte"] = scheduled_to
        if scheduled:
            query["scheduled_for"] = scheduled
        if student is not None:
            query["status"] = {"$in": STUDENT_VISIBLE_STATUSES}
            query["$or"] = [
                {"eligibility.departments": {"$exists": False}},
                {"eligibility.departments": {"$size": 0}},
            ]
            department = str(student.get("department") or "").strip()
            if department:
                query["$or"].append({"eligibility.departments": {
                    "$regex": rf"^\s*{re.escape(department)}\s*$", "$options": "i"
                }})

        total = self.collection.count_documents(query)
        cursor = (
            self.collection.find(query)
            .sort("scheduled_for", DESCENDING)
            .skip((page - 1) * page_size)
            .limit(page_size)
        )
        return list(cursor), total

    def add_section(self, exam_id: str, section: SectionCreate) -> dict:
        exam = self.get(exam_id)
        if any(s.get("name") == section.name for s in exam.get("sections") or []):
            raise StateError("A section with this name already exists", code="duplicate_section", status_code=400)

        doc = build_section(section)
        self.collection.update_one(
            {"_id": exam["_id"]},
            {"$push": {"sections": doc}, "$set": {"updated_at": utcnow()}}
        )
        return doc

    def add_question(self, exam_id: str, section_id: str, question: QuestionCreate) -> dict:
        """
        Append a question to a section and add its marks to the exam total.
        The append is a single $push, so concurrent appends all land.
        """
        exam = self.get(exam_id)
        if not any(s.get("section_id") == section_id for s in exam.get("sections") or []):
            raise NotFoundError("Section not found")

        doc = build_question(question)
        updated = self.collection.find_one_and_update(
            {"_id": exam["_id"], "sections.section_id": section_id},
            {
                "$push": {"sections.$[s].questions": doc},
                "$inc": {"total_marks": question_marks(doc)},
                "$set": {"updated_at": utcnow()},
            },
            array_filters=[{"s.section_id": section_id}],
            return_document=ReturnDocument.AFTER
        )
        if updated is None:
            raise NotFoundError("Section not found")

        if updated.get("passing_percentage") is not None:
            # Skipped when another append moved the total meanwhile; that writer sets it
            self.collection.update_one(
                {"_id": updated["_id"], "total_marks": updated["total_marks"]},
                {"$set": {"passing_marks": round(updated["passing_percentage"] / 100 * updated["total_marks"])}}
            )
        return doc

    def update_status(self, exam_id: str, status: ExamStatus) -> dict:
        exam = self.get(exam_id)
        if status == ExamStatus.published and count_questions(exam) == 0:
            raise StateError("Cannot publish an exam with no sections or questions",
                             code="no_questions", status_code=400)
        self.collection.update_one(
            {"_id": exam["_id"]},
            {"$set": {"status": status.value, "updated_at": utcnow()}}
        )
        exam["status"] = status.value
        return exam

    def activate(self, exam_id: str, hours: int, now: Optional[datetime] = None) -> dict:
        """Mark exam Active, opening a [now, now + hours] window where dates are missing."""
        now = now or utcnow()
        exam = self.get(exam_id)
        updates = {
            "status": ExamStatus.active.value,
            "start_date": exam.get("start_date") or now,
            "end_date": exam.get("end_date") or now + timedelta(hours=hours),
            "updated_at": now,
        }
        self.collection.update_one({"_id": exam["_id"]}, {"$set": updates})
        exam.update(updates)
        return exam

    def register_student(self, exam_oid: ObjectId, student_id: str, now: Optional[datetime] = None) -> bool:
        """
        Add a registration entry unless one exists.
        Returns False when the student was already registered.
        """
        entry = {
            "student_id": student_id,
            "registered_at": now or utcnow(),
            "status": RegistrationStatus.registered.value,
        }
        result = self.collection.update_one(
            {"_id": exam_oid, "registered_students.student_id": {"$ne": student_id}},
            {"$push": {"registered_students": entry}}
        )
        return result.modified_count > 0

    def mark_appeared(self, exam_oid: ObjectId, student_id: str) -> bool:
        result = self.collection.update_one(
            {"_id": exam_oid, "registered_students.student_id": student_id},
            {"$set": {"registered_students.$.status": RegistrationStatus.appeared.value}}
        )
        return result.modified_count > 0

    def delete(self, exam_id: str) -> dict:
        exam = self.get(exam_id)
        self.collection.delete_one({"_id": exam["_id"]})
        return exam


def get_exam_service() -> ExamService:
    """Get exam service instance."""
    return ExamService()
