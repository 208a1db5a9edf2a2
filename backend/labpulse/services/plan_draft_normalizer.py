from __future__ import annotations

import uuid
from collections.abc import Callable
from typing import Any

from labpulse.planner.errors import PlannerInputError
from labpulse.planner.schema import (
    DEFAULT_IMPORTANCE,
    MAX_IMPORTANCE,
    MIN_IMPORTANCE,
    PlanTaskItem,
    TaskStatus,
)

_TASK_STATUSES = {status.value for status in TaskStatus}


def normalize_plan_draft(
    draft: Any,
    *,
    id_factory: Callable[[], str] | None = None,
) -> list[PlanTaskItem]:
    new_id = id_factory or (lambda: str(uuid.uuid4()))

    if not isinstance(draft, dict):
        raise PlannerInputError("plan draft must be an object")
    raw_tasks = draft.get("tasks")
    if not isinstance(raw_tasks, list):
        raise PlannerInputError("plan draft tasks must be a list")

    items: list[PlanTaskItem] = []
    dependency_index: list[int | None] = []
    item_by_draft_index: dict[int, int] = {}
    for draft_idx, raw in enumerate(raw_tasks):
        if not isinstance(raw, dict):
            continue
        title = raw.get("title")
        if not isinstance(title, str) or not title.strip():
            continue

        items.append(
            {
                "id": new_id(),
                "title": title.strip(),
                "description": _read_text(raw.get("description")),
                "week_offset": max(_read_int(raw.get("weekOffset"), 0), 0),
                "importance": _clamp(
                    _read_int(raw.get("importance"), DEFAULT_IMPORTANCE),
                    MIN_IMPORTANCE,
                    MAX_IMPORTANCE,
                ),
                "status": _read_status(raw.get("status")),
                "dependencies": [],
                "recurrence": _read_recurrence(raw.get("recurrence")),
            }
        )
        item_by_draft_index[draft_idx] = len(items) - 1
        dependency_index.append(_first_index(raw.get("dependsOnTaskIndex")))

    for item, dep_idx in zip(items, dependency_index):
        if dep_idx is None or dep_idx not in item_by_draft_index:
            continue
        dep_id = items[item_by_draft_index[dep_idx]]["id"]
        if dep_id != item["id"]:
            item["dependencies"] = [dep_id]

    return items


def _read_recurrence(value: Any) -> dict[str, int] | None:
    if not isinstance(value, dict):
        return None
    count = _read_int(value.get("count"), 0)
    if count <= 1:
        return None
    return {"interval_weeks": 1, "duration_weeks": count}


def _first_index(value: Any) -> int | None:
    if not isinstance(value, list) or not value:
        return None
    first = value[0]
    if isinstance(first, bool) or not isinstance(first, int) or first < 0:
        return None
    return first


def _read_status(value: Any) -> str:
    if isinstance(value, str) and value in _TASK_STATUSES:
        return value
    return TaskStatus.default.value


def _read_text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _read_int(value: Any, default: int) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return default


def _clamp(value: int, low: int, high: int) -> int:
    return min(max(value, low), high)
