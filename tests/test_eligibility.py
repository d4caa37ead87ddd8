from datetime import datetime, timedelta

import pytest

from placement_cell.core.errors import EligibilityError, StateError
from placement_cell.exam.eligibility import (
    CREATE, DENY, RESUME, assert_eligible, check_eligibility, check_start, find_registration,
)

NOW = datetime(2026, 3, 10, 10, 0, 0)

STUDENT = {"student_id": "stu-1", "department": "CSE", "semester": "7", "cgpa": 8.1, "backlogs": 1}


def test_no_rules_means_everyone():
    assert check_eligibility({}, STUDENT).eligible
    assert check_eligibility({"eligibility": {"departments": []}}, STUDENT).eligible


def test_department_is_case_insensitive():
    exam = {"eligibility": {"departments": ["cse", "IT"]}}
    assert check_eligibility(exam, STUDENT).eligible
    assert not check_eligibility(exam, {**STUDENT, "department": "ECE"}).eligible


def test_numeric_thresholds():
    exam = {"eligibility": {"min_cgpa": 8.5, "max_backlogs": 0}}
    result = check_eligibility(exam, STUDENT)
    assert not result.eligible
    assert len(result.reasons) == 2


def test_missing_profile_value_fails_rule():
    exam = {"eligibility": {"min_percentage": 60}}
    result = check_eligibility(exam, STUDENT)
    assert not result.eligible
    assert "not set" in result.reasons[0]


def test_assert_eligible_raises():
    with pytest.raises(EligibilityError) as exc:
        assert_eligible({"eligibility": {"semesters": ["8"]}}, STUDENT)
    assert exc.value.status_code == 403
    assert exc.value.message.startswith("You are not eligible for this exam")


def test_find_registration():
    exam = {"registered_students": [{"student_id": "stu-1", "status": "registered"}]}
    assert find_registration(exam, "stu-1")["status"] == "registered"
    assert find_registration(exam, "stu-2") is None


def test_start_without_attempt_creates():
    assert check_start({"duration": 60}, STUDENT, None, NOW).action == CREATE


def test_start_with_live_attempt_resumes():
    attempt = {"status": "InProgress", "start_time": NOW - timedelta(minutes=20)}
    decision = check_start({"duration": 60}, STUDENT, attempt, NOW)
    assert decision.action == RESUME
    assert decision.remaining_minutes == 40


def test_start_after_completion_denied():
    decision = check_start({"duration": 60, "allow_reattempt": True}, STUDENT, {"status": "Completed"}, NOW)
    assert decision.action == DENY
    assert decision.code == "already_completed"
    with pytest.raises(StateError):
        decision.raise_if_denied()


def test_stale_attempt_expires_then_denies_without_reattempt():
    attempt = {"status": "InProgress", "start_time": NOW - timedelta(minutes=61)}
    decision = check_start({"duration": 60}, STUDENT, attempt, NOW)
    assert decision.action == DENY
    assert decision.expire_existing
    assert decision.code == "reattempt_not_allowed"


def test_stale_attempt_expires_then_creates_with_reattempt():
    attempt = {"status": "InProgress", "start_time": NOW - timedelta(minutes=61)}
    decision = check_start({"duration": 60, "allow_reattempt": True}, STUDENT, attempt, NOW)
    assert decision.action == CREATE
    assert decision.expire_existing


def test_timed_out_attempt_respects_reattempt_flag():
    attempt = {"status": "TimedOut", "start_time": NOW - timedelta(hours=3)}
    assert check_start({"duration": 60}, STUDENT, attempt, NOW).action == DENY
    decision = check_start({"duration": 60, "allow_reattempt": True}, STUDENT, attempt, NOW)
    assert decision.action == CREATE
    assert not decision.expire_existing


def test_ineligible_student_denied_first():
    exam = {"eligibility": {"departments": ["ECE"]}}
    decision = check_start(exam, STUDENT, None, NOW)
    assert decision.code == "not_eligible"
    with pytest.raises(EligibilityError):
        decision.raise_if_denied()
