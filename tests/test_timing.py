from datetime import datetime, timedelta

import pytest

from placement_cell.exam.timing import (
    TimingStatus, attempt_deadline, check_window, exam_status,
    is_attempt_expired, is_within_window,
)

NOW = datetime(2026, 3, 10, 10, 0, 0)


@pytest.mark.parametrize("status", ["Draft", "Completed", "Cancelled", "Active", None])
def test_date_range_ignores_status(status):
    exam = {"status": status, "start_date": NOW - timedelta(hours=1), "end_date": NOW + timedelta(hours=1)}
    assert is_within_window(exam, NOW)


def test_date_range_bounds_are_inclusive():
    exam = {"start_date": NOW, "end_date": NOW + timedelta(hours=2)}
    assert is_within_window(exam, NOW)
    assert is_within_window(exam, NOW + timedelta(hours=2))
    assert not is_within_window(exam, NOW + timedelta(hours=2, seconds=1))


def test_not_started_reason():
    exam = {"status": "Active", "start_date": NOW + timedelta(days=1), "end_date": NOW + timedelta(days=2)}
    check = check_window(exam, NOW)
    assert not check.active
    assert check.status == TimingStatus.SCHEDULED
    assert check.reason.startswith("Exam has not started yet. It will be available from")


def test_ended_reason():
    exam = {"start_date": NOW - timedelta(days=2), "end_date": NOW - timedelta(days=1)}
    check = check_window(exam, NOW)
    assert check.status == TimingStatus.EXPIRED
    assert "no longer available" in check.reason


def test_schedule_window_uses_duration():
    exam = {"scheduled_for": NOW, "duration": 30}
    assert is_within_window(exam, NOW + timedelta(minutes=30))
    assert not is_within_window(exam, NOW + timedelta(minutes=31))
    assert check_window(exam, NOW).basis == "schedule"


def test_status_fallback():
    assert is_within_window({"status": "Ongoing"}, NOW)
    check = check_window({"status": "Draft"}, NOW)
    assert not check.active
    assert "Exam status (Draft) is not Active" in check.reason
    assert exam_status({"status": "Cancelled"}, NOW) == TimingStatus.EXPIRED


def test_force_active_overrides_only_inactive():
    exam = {"start_date": NOW + timedelta(days=1), "end_date": NOW + timedelta(days=2)}
    check = check_window(exam, NOW, force_active=True)
    assert check.active
    assert check.basis == "forced"

    live = {"start_date": NOW - timedelta(hours=1), "end_date": NOW + timedelta(hours=1)}
    assert check_window(live, NOW, force_active=True).basis == "date_range"


def test_attempt_deadline():
    exam = {"duration": 60}
    attempt = {"start_time": NOW}
    assert attempt_deadline(attempt, exam) == NOW + timedelta(minutes=60)
    assert not is_attempt_expired(attempt, exam, NOW + timedelta(minutes=60))
    assert is_attempt_expired(attempt, exam, NOW + timedelta(minutes=61))


def test_attempt_deadline_default_duration():
    assert attempt_deadline({"start_time": NOW}, {}, default_duration=45) == NOW + timedelta(minutes=45)
