# Overview: Scoping and calendar windows shared by the dashboard counts.

"""
Dashboard counts (orders, products, logos) share two rules:

MULTI-TENANT: SuperAdmin counts every row, or one org when org_id is given.
Admin and Manager count their own org only; global rows are not theirs
and are excluded. A staff org_id parameter is ignored.

TIMEFRAMES: "day", "week" (ISO week, Monday first), "month" and "year"
are calendar windows containing now (UTC). No timeframe means all time.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from ..errors import ValidationError
from ..time_utils import utcnow
from ..validation import coerce_int
from .access_service import Caller

TIMEFRAMES = ("day", "week", "month", "year")

# Trend bucket label per timeframe.
PERIOD_FORMATS = {
    "day": "%H:00",
    "week": "%a",
    "month": "%Y-%m-%d",
    "year": "%b",
}


def parse_timeframe(value, *, default: str | None = None) -> str | None:
    if value is None or value == "":
        return default
    timeframe = str(value).strip().lower()
    if timeframe not in TIMEFRAMES:
        raise ValidationError(f"Invalid timeframe: {value!r}", {"allowed": list(TIMEFRAMES)})
    return timeframe


def parse_report_org(value) -> int | None:
    if value is None or value == "":
        return None
    return coerce_int(value, "org_id")


def timeframe_window(timeframe: str, now: datetime | None = None) -> tuple[datetime, datetime]:
    """Half-open [start, end) window of the calendar day/week/month/year containing now."""
    now = now or utcnow()
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    if timeframe == "day":
        start = today
        end = start + timedelta(days=1)
    elif timeframe == "week":
        start = today - timedelta(days=today.weekday())
        end = start + timedelta(days=7)
    elif timeframe == "month":
        start = today.replace(day=1)
        if start.month == 12:
            end = start.replace(year=start.year + 1, month=1)
        else:
            end = start.replace(month=start.month + 1)
    elif timeframe == "year":
        start = today.replace(month=1, day=1)
        end = start.replace(year=start.year + 1)
    else:
        raise ValidationError(f"Invalid timeframe: {timeframe!r}", {"allowed": list(TIMEFRAMES)})
    return start, end


def apply_timeframe(query, column, timeframe: str | None, now: datetime | None = None):
    if timeframe is None:
        return query
    start, end = timeframe_window(timeframe, now)
    return query.filter(column >= start, column < end)


def apply_report_scope(query, org_column, caller: Caller, org_id: int | None = None):
    if caller.is_super_admin:
        if org_id is not None:
            query = query.filter(org_column == org_id)
        return query
    return query.filter(org_column == caller.org_id)


def period_label(value: datetime, timeframe: str) -> str:
    return value.strftime(PERIOD_FORMATS[timeframe])
