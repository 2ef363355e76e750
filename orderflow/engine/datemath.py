"""
Date arithmetic for service periods.

Pure functions only: extension baseline selection, calendar-month addition,
D-day computation and urgency classification. Every function that depends on
"now" takes it as an argument so callers (and tests) control the clock.
"""
from __future__ import annotations

import calendar
import math
from datetime import datetime, timezone
from typing import Optional

SECONDS_PER_DAY = 86400

URGENCY_EXPIRED = "expired"
URGENCY_URGENT = "urgent"
URGENCY_WARNING = "warning"
URGENCY_NORMAL = "normal"

URGENCY_BUCKETS = (URGENCY_EXPIRED, URGENCY_URGENT, URGENCY_WARNING, URGENCY_NORMAL)


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def add_months(value: datetime, months: int) -> datetime:
    """Add calendar months, clamping the day to the target month's length.

    ``2024-01-31 + 1`` gives ``2024-02-29``; the time of day is kept.
    """
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def select_baseline(current_end: Optional[datetime], now: datetime) -> datetime:
    """Pick the date an extension counts from.

    A missing or already-past end date restarts from ``now``; a still-running
    period is extended from its own end.
    """
    if current_end is None or current_end < now:
        return now
    return current_end


def extend_period(current_end: Optional[datetime], months: int, now: datetime) -> datetime:
    return add_months(select_baseline(current_end, now), months)


def days_left(end: datetime, now: datetime) -> int:
    """Whole days remaining, rounded up (D-day)."""
    return math.ceil((end - now).total_seconds() / SECONDS_PER_DAY)


def classify_days_left(remaining: int) -> str:
    if remaining < 0:
        return URGENCY_EXPIRED
    if remaining <= 3:
        return URGENCY_URGENT
    if remaining <= 7:
        return URGENCY_WARNING
    return URGENCY_NORMAL
