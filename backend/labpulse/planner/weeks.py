from __future__ import annotations

import re
from datetime import date, datetime, timedelta
from typing import Any

from labpulse.planner.errors import InvalidDateError, PlannerInputError

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def parse_iso_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not _ISO_DATE.match(value):
        raise InvalidDateError(f"expected an ISO date string (YYYY-MM-DD), got {value!r}")
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise InvalidDateError(
            f"expected an ISO date string (YYYY-MM-DD), got {value!r}"
        ) from exc


def start_of_week(value: Any) -> date:
    parsed = parse_iso_date(value)
    # date.weekday(): Monday == 0 ... Sunday == 6
    try:
        return parsed - timedelta(days=(parsed.weekday() + 1) % 7)
    except OverflowError as exc:
        raise InvalidDateError(f"week of {parsed.isoformat()} is out of range") from exc


def normalize_to_sunday(value: Any) -> str:
    return start_of_week(value).isoformat()


def week_offset_of(start: Any, target: Any) -> int:
    delta = start_of_week(target) - start_of_week(start)
    return delta.days // 7


def date_from_offset(start: Any, offset: int) -> str:
    if isinstance(offset, bool) or not isinstance(offset, int):
        raise PlannerInputError("week offset must be int")
    week_start = start_of_week(start)
    try:
        return (week_start + timedelta(weeks=offset)).isoformat()
    except OverflowError as exc:
        raise InvalidDateError(
            f"{week_start.isoformat()} shifted by {offset} weeks is out of range"
        ) from exc


def weeks_spanned(start: Any, end: Any) -> int:
    return abs(week_offset_of(start, end)) + 1
