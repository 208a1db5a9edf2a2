from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from labpulse.planner.dependencies import (
    add_dependency,
    blocking_dependencies,
    delete_task,
    remove_dependency,
)
from labpulse.planner.errors import PlannerCycleError, PlannerError
from labpulse.planner.expansion import expand_plan
from labpulse.planner.schema import TaskRecord
from labpulse.planner.timeline import shift_experiment_timeline
from labpulse.planner.weeks import date_from_offset

DEFAULT_EXPERIMENT_ID = "exp"


@dataclass
class ScenarioResult:
    tasks: list[TaskRecord]
    end_date: str | None
    rejected_steps: list[int] = field(default_factory=list)
    failed_steps: dict[int, str] = field(default_factory=dict)

    def by_id(self) -> dict[str, TaskRecord]:
        return {task["id"]: task for task in self.tasks}

    def blocked_by(self) -> dict[str, list[str]]:
        return {
            task["id"]: blocking_dependencies(task, self.tasks) for task in self.tasks
        }


def load_scenario(path: Path) -> dict[str, Any]:
    with path.open("r", encoding="utf-8") as f:
        payload = yaml.safe_load(f)

    if not isinstance(payload, dict):
        raise ValueError(f"scenario at {path} must be a YAML mapping")
    return payload


def run_scenario(scenario: dict[str, Any]) -> ScenarioResult:
    start_date = str(scenario.get("start_date", "2024-01-07"))
    experiment = {
        "id": DEFAULT_EXPERIMENT_ID,
        "name": scenario.get("name", "scenario"),
        "description": "",
        "start_date": start_date,
        "end_date": _optional_str(scenario.get("end_date")),
        "expected_weeks": 4,
        "status": "active",
    }

    tasks = [_task_from_entry(entry, start_date) for entry in scenario.get("tasks", [])]

    plan = scenario.get("plan")
    if plan:
        counter = iter(range(1, 10_000))
        tasks.extend(
            expand_plan(
                plan,
                start_date,
                experiment_id=DEFAULT_EXPERIMENT_ID,
                id_factory=lambda: f"gen-{next(counter)}",
            )
        )

    result = ScenarioResult(tasks=tasks, end_date=experiment["end_date"])
    for idx, step in enumerate(scenario.get("steps", [])):
        if not isinstance(step, dict):
            raise ValueError(f"steps[{idx}] must be a mapping")
        try:
            experiment, result.tasks = _apply_step(step, experiment, result.tasks)
        except PlannerCycleError:
            result.rejected_steps.append(idx)
        except PlannerError as exc:
            result.failed_steps[idx] = type(exc).__name__
    result.end_date = experiment.get("end_date")
    return result


def _apply_step(
    step: dict[str, Any],
    experiment: dict[str, Any],
    tasks: list[TaskRecord],
) -> tuple[dict[str, Any], list[TaskRecord]]:
    op = step.get("op")
    if op == "add_dependency":
        return experiment, add_dependency(tasks, str(step["task"]), str(step["dependency"]))
    if op == "remove_dependency":
        return experiment, remove_dependency(
            tasks, str(step["task"]), str(step["dependency"])
        )
    if op == "delete":
        return experiment, delete_task(tasks, str(step["task"]))
    if op == "complete":
        target = str(step["task"])
        return experiment, [
            {**task, "completed": True} if task["id"] == target else task
            for task in tasks
        ]
    if op == "shift":
        return shift_experiment_timeline(experiment, tasks, step["weeks"])
    raise ValueError(f"unsupported scenario op: {op!r}")


def _task_from_entry(entry: dict[str, Any], start_date: str) -> TaskRecord:
    if not isinstance(entry, dict) or "id" not in entry:
        raise ValueError(f"scenario task must be a mapping with an id: {entry!r}")
    week = entry.get("week")
    return {
        "id": str(entry["id"]),
        "experiment_id": str(entry.get("experiment", DEFAULT_EXPERIMENT_ID)),
        "title": str(entry.get("title", entry["id"])),
        "description": "",
        "week_id": str(week) if week else date_from_offset(start_date, entry.get("week_offset", 0)),
        "status": "default",
        "importance": 3,
        "completed": bool(entry.get("completed", False)),
        "tags": [],
        "dependencies": [str(dep) for dep in entry.get("dependencies", [])],
        "recurrence_group_id": None,
        "plan_task_id": None,
    }


def _optional_str(value: Any) -> str | None:
    return str(value) if value else None
