"""
Date helpers.

All datetimes in this project are naive UTC, which is what pymongo hands
back by default. Anything timezone-aware coming in from the API is
converted at the schema boundary with to_naive_utc().
"""

import math
from datetime import datetime, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    """Current time as naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def add_minutes(value: datetime, minutes: float) -> datetime:
    return value + timedelta(minutes=minutes)


def minutes_between(start: datetime, end: datetime) -> int:
    """Whole minutes from start to end, rounded to nearest."""
    return int(round((end - start).total_seconds() / 60))


def minutes_remaining(now: datetime, deadline: datetime) -> int:
    """Minutes left until deadline, rounded up, never negative."""
    seconds = (deadline - now).total_seconds()
    if seconds <= 0:
        return 0
    return int(math.ceil(seconds / 60))


def format_dt(value: Optional[datetime]) -> str:
    if value is None:
        return "Not set"
    return value.strftime("%d %b %Y, %I:%M %p UTC")
