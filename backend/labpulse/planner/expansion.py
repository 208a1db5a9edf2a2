from __future__ import annotations

import re
import uuid
from collections.abc import Callable, Iterable
from typing import Any

from labpulse.planner.errors import InvalidRecurrenceError, PlannerInputError
from labpulse.planner.schema import (
    DEFAULT_IMPORTANCE,
    PlanTaskItem,
    TaskRecord,
    TaskStatus,
)
from labpulse.planner.weeks import date_from_offset, parse_iso_date

_OCCURRENCE_SUFFIX = re.compile(r"\s\(\d+\)$")


def expand_plan(
    plan_entries: Iterable[PlanTaskItem],
    start_date: Any,
    *,
    experiment_id: str,
    id_factory: Callable[[], str] | None = None,
) -> list[TaskRecord]:
    new_id = id_factory or _uuid4_str
    start = parse_iso_date(start_date)

    tasks: list[TaskRecord] = []
    for idx, raw_entry in enumerate(plan_entries):
        entry = _as_dict(raw_entry, f"plan[{idx}]")
        entry_id = _read_str(entry, "id", context=f"plan[{idx}]")
        title = _read_str(entry, "title", context=f"plan[{idx}]")
        week_offset = _read_int(entry, "week_offset", context=f"plan[{idx}]")
        recurrence = entry.get("recurrence")

        base: dict[str, Any] = {
            "experiment_id": experiment_id,
            "description": entry.get("description") or "",
            "status": entry.get("status") or TaskStatus.default.value,
            "importance": entry.get("importance", DEFAULT_IMPORTANCE),
            "completed": False,
            "tags": [],
            "dependencies": [],
            "plan_task_id": entry_id,
        }

        if recurrence is None:
            tasks.append(
                {
                    **base,
                    "id": new_id(),
                    "title": title,
                    "week_id": date_from_offset(start, week_offset),
                    "recurrence_group_id": None,
                }
            )
            continue

        interval, duration = _read_recurrence(recurrence, context=f"plan[{idx}]")
        group_id = new_id()
        for occurrence, relative in enumerate(range(0, duration, interval), start=1):
            tasks.append(
                {
                    **base,
                    "id": new_id(),
                    "title": f"{title} ({occurrence})",
                    "week_id": date_from_offset(start, week_offset + relative),
                    "recurrence_group_id": group_id,
                }
            )

    return tasks


def strip_occurrence_suffix(title: str) -> str:
    return _OCCURRENCE_SUFFIX.sub("", title)


def _read_recurrence(value: Any, *, context: str) -> tuple[int, int]:
    recurrence = _as_dict(value, f"{context}.recurrence")
    interval = recurrence.get("interval_weeks")
    duration = recurrence.get("duration_weeks")
    if isinstance(interval, bool) or not isinstance(interval, int) or interval < 1:
        raise InvalidRecurrenceError(
            f"{context}.recurrence.interval_weeks must be a positive int"
        )
    if isinstance(duration, bool) or not isinstance(duration, int) or duration < 1:
        raise InvalidRecurrenceError(
            f"{context}.recurrence.duration_weeks must be a positive int"
        )
    return interval, duration


def _read_str(payload: dict[str, Any], key: str, context: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str):
        raise PlannerInputError(f"{context}.{key} must be a string")
    return value


def _read_int(payload: dict[str, Any], key: str, context: str) -> int:
    value = payload.get(key)
    if isinstance(value, bool) or not isinstance(value, int):
        raise PlannerInputError(f"{context}.{key} must be int")
    return value


def _as_dict(value: Any, field: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise PlannerInputError(f"{field} must be an object")
    return value


def _uuid4_str() -> str:
    return str(uuid.uuid4())
