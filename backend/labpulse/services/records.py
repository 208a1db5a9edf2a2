from __future__ import annotations

from datetime import date

from labpulse.db.models import Experiment, Task
from labpulse.planner.schema import ExperimentRecord, PlanTaskItem, TaskRecord


def task_to_record(task: Task) -> TaskRecord:
    return {
        "id": str(task.id),
        "experiment_id": str(task.experiment_id),
        "title": task.title,
        "description": task.description or "",
        "week_id": task.week_id.isoformat(),
        "status": task.status,
        "importance": task.importance,
        "completed": bool(task.completed),
        "tags": list(task.tags or []),
        "dependencies": list(task.dependencies or []),
        "recurrence_group_id": task.recurrence_group_id,
        "plan_task_id": task.plan_task_id,
    }


def experiment_to_record(experiment: Experiment) -> ExperimentRecord:
    return {
        "id": str(experiment.id),
        "name": experiment.name,
        "description": experiment.description or "",
        "start_date": experiment.start_date.isoformat(),
        "end_date": experiment.end_date.isoformat() if experiment.end_date else None,
        "expected_weeks": experiment.expected_weeks,
        "status": experiment.status,
        "proposal_text": experiment.proposal_text,
        "original_plan": list(experiment.original_plan or []) or None,
    }


def apply_task_record(task: Task, record: TaskRecord) -> None:
    task.title = record["title"]
    task.description = record["description"]
    task.week_id = date.fromisoformat(record["week_id"])
    task.status = record["status"]
    task.importance = record["importance"]
    task.completed = record["completed"]
    task.tags = list(record["tags"])
    task.dependencies = list(record["dependencies"])
    task.recurrence_group_id = record.get("recurrence_group_id")
    task.plan_task_id = record.get("plan_task_id")


def plan_items_as_json(items: list[PlanTaskItem] | None) -> list[dict] | None:
    if not items:
        return None
    return [dict(item) for item in items]
