"""
Timing Validator

Decides whether an exam can be taken right now. Priority, first match wins:

1. start_date AND end_date set  -> active iff start_date <= now <= end_date
2. scheduled_for set            -> active iff scheduled_for <= now <= scheduled_for + duration
3. legacy status field          -> Active / Ongoing / Published count as active

Dates always win over the status field; status is often left stale by
officers. Also holds the per-attempt deadline helpers.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from placement_cell.utils.dates import add_minutes, format_dt

logger = logging.getLogger(__name__)

DEFAULT_DURATION_MINUTES = 60

ACTIVE_STATUSES = {"active", "ongoing", "published"}
ENDED_STATUSES = {"completed", "cancelled"}


class TimingStatus(str, Enum):
    SCHEDULED = "Scheduled"
    ACTIVE = "Active"
    EXPIRED = "Expired"


@dataclass(frozen=True)
class WindowCheck:
    active: bool
    status: TimingStatus
    basis: str  # date_range | schedule | status | forced
    reason: str = ""


def exam_duration(exam: dict, default: int = DEFAULT_DURATION_MINUTES) -> int:
    return exam.get("duration") or default


def _not_started(start: datetime) -> str:
    return f"Exam has not started yet. It will be available from {format_dt(start)}"


def _ended(end: datetime) -> str:
    return f"This exam has ended and is no longer available for attempt. It ended at {format_dt(end)}"


def _check_range(start: datetime, end: datetime, now: datetime, basis: str) -> WindowCheck:
    if now < start:
        return WindowCheck(False, TimingStatus.SCHEDULED, basis, _not_started(start))
    if now > end:
        return WindowCheck(False, TimingStatus.EXPIRED, basis, _ended(end))
    return WindowCheck(True, TimingStatus.ACTIVE, basis)


def _evaluate(exam: dict, now: datetime, default_duration: int) -> WindowCheck:
    start_date, end_date = exam.get("start_date"), exam.get("end_date")
    if start_date and end_date:
        return _check_range(start_date, end_date, now, "date_range")

    scheduled_for = exam.get("scheduled_for")
    if scheduled_for:
        end = add_minutes(scheduled_for, exam_duration(exam, default_duration))
        return _check_range(scheduled_for, end, now, "schedule")

    status = (exam.get("status") or "").strip()
    if status.lower() in ACTIVE_STATUSES:
        return WindowCheck(True, TimingStatus.ACTIVE, "status")
    timing = TimingStatus.EXPIRED if status.lower() in ENDED_STATUSES else TimingStatus.SCHEDULED
    return WindowCheck(
        False, timing, "status",
        f"Exam is not currently active for taking. Exam status ({status or 'Not set'}) is not Active"
    )


def check_window(
    exam: dict,
    now: datetime,
    force_active: bool = False,
    default_duration: int = DEFAULT_DURATION_MINUTES
) -> WindowCheck:
    """
    Evaluate the exam's availability window at `now`.

    force_active is the debugging override (Settings.exam_force_active).
    It only ever turns an inactive result into an active one, and says so
    in the logs every time it does.
    """
    check = _evaluate(exam, now, default_duration)
    if force_active and not check.active:
        logger.warning(
            "exam_force_active is enabled: treating exam %s as active (%s)",
            exam.get("_id"), check.reason
        )
        return WindowCheck(True, TimingStatus.ACTIVE, "forced", check.reason)
    return check


def is_within_window(exam: dict, now: datetime, force_active: bool = False,
                     default_duration: int = DEFAULT_DURATION_MINUTES) -> bool:
    return check_window(exam, now, force_active, default_duration).active


def exam_status(exam: dict, now: datetime, default_duration: int = DEFAULT_DURATION_MINUTES) -> TimingStatus:
    return _evaluate(exam, now, default_duration).status


def attempt_deadline(attempt: dict, exam: dict, default_duration: int = DEFAULT_DURATION_MINUTES) -> datetime:
    return add_minutes(attempt["start_time"], exam_duration(exam, default_duration))


def is_attempt_expired(attempt: dict, exam: dict, now: datetime,
                       default_duration: int = DEFAULT_DURATION_MINUTES) -> bool:
    return now > attempt_deadline(attempt, exam, default_duration)
