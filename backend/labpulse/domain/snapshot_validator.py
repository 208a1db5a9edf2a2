from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import date
from typing import Any

from labpulse.planner.dependencies import would_create_cycle
from labpulse.planner.errors import InvalidDateError
from labpulse.planner.schema import (
    DEFAULT_IMPORTANCE,
    MAX_IMPORTANCE,
    MIN_IMPORTANCE,
    ExperimentRecord,
    ExperimentStatus,
    PlanTaskItem,
    TaskRecord,
    TaskStatus,
)
from labpulse.planner.weeks import normalize_to_sunday

SCHEMA_VERSION = 1
_TASK_STATUSES = {status.value for status in TaskStatus}


class SnapshotValidationError(ValueError):
    """Raised when an imported board snapshot is structurally invalid."""


@dataclass
class BoardSnapshot:
    experiments: list[ExperimentRecord]
    tasks: list[TaskRecord]
    schema_version: int = SCHEMA_VERSION


def validate_snapshot(payload: Any, *, today: date | None = None) -> BoardSnapshot:
    if not isinstance(payload, dict):
        raise SnapshotValidationError("Invalid file format: content is not a JSON object")
    raw_experiments = payload.get("experiments")
    if not isinstance(raw_experiments, list):
        raise SnapshotValidationError("Invalid format: 'experiments' array missing")
    raw_tasks = payload.get("tasks")
    if not isinstance(raw_tasks, list):
        raise SnapshotValidationError("Invalid format: 'tasks' array missing")

    fallback_week = normalize_to_sunday(today or date.today())

    experiments: list[ExperimentRecord] = []
    seen_experiment_ids: set[str] = set()
    for idx, raw in enumerate(raw_experiments):
        experiment = _clean_experiment(_as_dict(raw, f"experiments[{idx}]"), fallback_week)
        if experiment["id"] in seen_experiment_ids:
            continue
        seen_experiment_ids.add(experiment["id"])
        experiments.append(experiment)

    tasks: list[TaskRecord] = []
    seen_task_ids: set[str] = set()
    for idx, raw in enumerate(raw_tasks):
        item = _as_dict(raw, f"tasks[{idx}]")
        task_id = _str_or_none(item.get("id")) or _new_id()
        if task_id in seen_task_ids:
            continue
        seen_task_ids.add(task_id)
        experiment_id = item.get("experimentId")
        if not isinstance(experiment_id, str) or experiment_id not in seen_experiment_ids:
            continue
        tasks.append(_clean_task(task_id, item, fallback_week))

    return BoardSnapshot(
        experiments=experiments,
        tasks=_prune_dependencies(tasks),
    )


def _clean_experiment(item: dict[str, Any], fallback_week: str) -> ExperimentRecord:
    start_date = _week_or_default(item.get("startDate"), fallback_week)
    end_date = _week_or_default(item.get("endDate"), None)
    expected_weeks = item.get("expectedWeeks")
    if isinstance(expected_weeks, bool) or not isinstance(expected_weeks, int):
        expected_weeks = 4

    raw_plan = item.get("originalPlan")
    original_plan = (
        [_clean_plan_item(entry) for entry in raw_plan if isinstance(entry, dict)]
        if isinstance(raw_plan, list)
        else None
    )

    return {
        "id": _str_or_none(item.get("id")) or _new_id(),
        "name": _str_or_none(item.get("name")) or "Untitled Experiment",
        "description": _str_or_none(item.get("description")) or "",
        "start_date": start_date,
        "end_date": end_date,
        "expected_weeks": expected_weeks,
        "status": (
            ExperimentStatus.archived.value
            if item.get("status") == ExperimentStatus.archived.value
            else ExperimentStatus.active.value
        ),
        "proposal_text": _str_or_none(item.get("proposalText")) or "",
        "original_plan": original_plan or None,
    }


def _clean_plan_item(item: dict[str, Any]) -> PlanTaskItem:
    week_offset = item.get("weekOffset")
    plan_item: PlanTaskItem = {
        "id": _str_or_none(item.get("id")) or _new_id(),
        "title": _str_or_none(item.get("title")) or "Untitled Task",
        "description": _str_or_none(item.get("description")) or "",
        "week_offset": week_offset if _is_int(week_offset) else 0,
        "importance": _clamp_importance(item.get("importance")),
        "status": _status(item.get("status")),
        "dependencies": _str_list(item.get("dependencies")),
        "recurrence": None,
    }
    recurrence = item.get("recurrence")
    if isinstance(recurrence, dict):
        interval = recurrence.get("intervalWeeks")
        duration = recurrence.get("durationWeeks")
        if _is_int(interval) and _is_int(duration) and interval >= 1 and duration >= 1:
            plan_item["recurrence"] = {
                "interval_weeks": interval,
                "duration_weeks": duration,
            }
    return plan_item


def _clean_task(task_id: str, item: dict[str, Any], fallback_week: str) -> TaskRecord:
    return {
        "id": task_id,
        "experiment_id": item["experimentId"],
        "title": _str_or_none(item.get("title")) or "Untitled Task",
        "description": _str_or_none(item.get("description")) or "",
        "week_id": _week_or_default(item.get("weekId"), fallback_week),
        "status": _status(item.get("status")),
        "importance": _clamp_importance(item.get("importance")),
        "completed": bool(item.get("completed")),
        "tags": _str_list(item.get("tags")),
        "dependencies": _str_list(item.get("dependencies")),
        "recurrence_group_id": _str_or_none(item.get("recurrenceGroupId")),
        "plan_task_id": _str_or_none(item.get("planTaskId")),
    }


def _prune_dependencies(tasks: list[TaskRecord]) -> list[TaskRecord]:
    experiment_by_task = {task["id"]: task["experiment_id"] for task in tasks}
    accepted: list[TaskRecord] = [{**task, "dependencies": []} for task in tasks]
    index_by_id = {task["id"]: idx for idx, task in enumerate(accepted)}

    for task in tasks:
        idx = index_by_id[task["id"]]
        for dep_id in task["dependencies"]:
            if experiment_by_task.get(dep_id) != task["experiment_id"]:
                continue
            if dep_id in accepted[idx]["dependencies"]:
                continue
            if would_create_cycle(accepted, task["id"], dep_id):
                continue
            accepted[idx] = {
                **accepted[idx],
                "dependencies": [*accepted[idx]["dependencies"], dep_id],
            }
    return accepted


def _week_or_default(value: Any, default: str | None) -> str | None:
    if not value:
        return default
    try:
        return normalize_to_sunday(value)
    except InvalidDateError:
        return default


def _status(value: Any) -> str:
    if isinstance(value, str) and value in _TASK_STATUSES:
        return value
    return TaskStatus.default.value


def _clamp_importance(value: Any) -> int:
    if not _is_int(value):
        return DEFAULT_IMPORTANCE
    return min(max(value, MIN_IMPORTANCE), MAX_IMPORTANCE)


def _str_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [entry for entry in value if isinstance(entry, str)]


def _str_or_none(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _as_dict(value: Any, field_name: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise SnapshotValidationError(f"'{field_name}' must be an object")
    return value


def _new_id() -> str:
    return str(uuid.uuid4())
