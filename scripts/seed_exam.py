#!/usr/bin/env python3
"""
Seed Script

Creates an active sample exam and a student profile, then prints bearer
tokens for an officer and the student so the API can be tried from /docs.
Run: python scripts/seed_exam.py
"""
import sys
sys.path.insert(0, '.')

from datetime import timedelta

from placement_cell.core.auth import create_access_token
from placement_cell.db.mongodb import test_mongo_connection, init_mongo_indexes
from placement_cell.schemas.schemas import ExamCreate, ExamStatus
from placement_cell.services.exam_service import ExamService
from placement_cell.services.student_service import StudentService
from placement_cell.utils.dates import utcnow

STUDENT_ID = "demo-student"
OFFICER_ID = "demo-tpo"

SAMPLE_SECTIONS = [
    {
        "name": "Quantitative Aptitude",
        "questions": [
            {"type": "MCQ", "question": "What is 15% of 200?", "options": ["15", "20", "30", "45"],
             "correct_answer": "30", "marks": 2, "negative_marks": 0.5},
            {"type": "MultiSelect", "question": "Which of these are prime?", "options": ["2", "9", "11", "15"],
             "correct_answer": ["2", "11"], "marks": 4},
        ],
    },
    {
        "name": "Verbal Ability",
        "questions": [
            {"type": "TrueFalse", "question": "'Affect' is usually a verb.", "correct_answer": "True", "marks": 1},
            {"type": "ShortAnswer", "question": "Antonym of 'scarce'?", "correct_answer": "abundant",
             "marks": 3, "explanation": "Scarce means in short supply."},
        ],
    },
]


def main():
    if not test_mongo_connection():
        print("❌ MongoDB not reachable, check MONGODB_URI")
        sys.exit(1)
    init_mongo_indexes()

    now = utcnow()
    exams = ExamService()
    exam = exams.create(ExamCreate(
        title="Demo Aptitude Test",
        description="Sample exam created by seed_exam.py",
        type="Aptitude",
        duration=30,
        passing_percentage=40,
        scheduled_for=now,
        registration_deadline=now + timedelta(hours=2),
        sections=SAMPLE_SECTIONS,
        eligibility={"departments": ["CSE", "IT"], "min_cgpa": 6.0},
    ), created_by=OFFICER_ID)
    exams.update_status(str(exam["_id"]), ExamStatus.published)
    exams.activate(str(exam["_id"]), hours=24)
    print(f"✅ Exam created: {exam['_id']}")

    StudentService().upsert_profile(STUDENT_ID, {
        "name": "Demo Student", "email": "demo@example.edu",
        "department": "CSE", "semester": "7", "cgpa": 7.8, "backlogs": 0,
    })
    print(f"✅ Student profile: {STUDENT_ID}")

    print("\nOfficer token:")
    print(create_access_token({"sub": OFFICER_ID, "role": "tpo"}))
    print("\nStudent token:")
    print(create_access_token({"sub": STUDENT_ID, "role": "student"}))


if __name__ == "__main__":
    main()
