import random
from datetime import datetime, timedelta

import pytest

from placement_cell.core.config import Settings
from placement_cell.db import mongodb
from placement_cell.exam.attempts import ExamAttemptManager
from placement_cell.schemas.schemas import ExamCreate
from placement_cell.services.exam_service import ExamService
from placement_cell.services.student_service import StudentService
from tests.fakes import FakeDatabase

NOW = datetime(2026, 3, 10, 10, 0, 0)


def sample_sections():
    return [
        {
            "name": "Quant",
            "questions": [
                {"type": "MCQ", "question": "Pick two", "options": ["1", "2", "3", "4"],
                 "correct_answer": "2", "marks": 2, "negative_marks": 1},
                {"type": "MultiSelect", "question": "Pick vowels", "options": ["A", "B", "C", "D"],
                 "correct_answer": ["A", "B"], "marks": 4},
            ],
        },
        {
            "name": "Verbal",
            "questions": [
                {"type": "TrueFalse", "question": "Sky is blue", "correct_answer": "True", "marks": 1},
                {"type": "ShortAnswer", "question": "Capital of France", "correct_answer": "Paris",
                 "marks": 3, "explanation": "It is Paris"},
            ],
        },
    ]


def exam_payload(**overrides):
    data = {
        "title": "Aptitude Round 1",
        "type": "Aptitude",
        "duration": 60,
        "passing_percentage": 40,
        "scheduled_for": NOW,
        "registration_deadline": NOW + timedelta(hours=1),
        "start_date": NOW - timedelta(hours=1),
        "end_date": NOW + timedelta(hours=5),
        "randomize_questions": False,
        "sections": sample_sections(),
    }
    data.update(overrides)
    return data


def question_ids(exam):
    """question text -> question_id"""
    return {
        q["question"]: q["question_id"]
        for section in exam["sections"]
        for q in section["questions"]
    }


@pytest.fixture(autouse=True)
def fake_db(monkeypatch):
    db = FakeDatabase()
    monkeypatch.setattr(mongodb, "_db", db)
    return db


@pytest.fixture
def settings():
    return Settings(exam_force_active=False, exam_negative_marking=True, exam_default_duration=60)


@pytest.fixture
def manager(fake_db, settings):
    return ExamAttemptManager(settings=settings, rng=random.Random(7))


@pytest.fixture
def make_exam(fake_db):
    """Create an exam through ExamService, then force raw fields (status etc.) onto it."""
    def _make(status="Published", **overrides):
        exam = ExamService().create(ExamCreate(**exam_payload(**overrides)), created_by="tpo-1")
        fake_db["exams"].update_one({"_id": exam["_id"]}, {"$set": {"status": status}})
        return fake_db["exams"].find_one({"_id": exam["_id"]})
    return _make


@pytest.fixture
def student(fake_db):
    return StudentService().upsert_profile("stu-1", {
        "name": "Asha Rao",
        "email": "asha@example.edu",
        "department": "CSE",
        "semester": "7",
        "cgpa": 8.1,
        "backlogs": 0,
        "batch": "2026",
    })
