from __future__ import annotations

from typing import Any

from sqlalchemy.orm import Session

from labpulse.api.schemas import ExperimentResponse, PlanTaskItemResponse, TaskResponse
from labpulse.db.models import Experiment, Task, TaskStatus
from labpulse.services.task_service import TaskService


def serialize_experiment(experiment: Experiment) -> ExperimentResponse:
    plan = experiment.original_plan if isinstance(experiment.original_plan, list) else []
    return ExperimentResponse(
        id=experiment.id,
        name=experiment.name,
        description=experiment.description or "",
        start_date=experiment.start_date,
        end_date=experiment.end_date,
        expected_weeks=experiment.expected_weeks,
        status=experiment.status,
        proposal_text=experiment.proposal_text,
        original_plan=[_serialize_plan_item(item) for item in plan if isinstance(item, dict)]
        or None,
        task_count=len(experiment.tasks),
        created_at=experiment.created_at,
        updated_at=experiment.updated_at,
    )


def serialize_tasks(session: Session, tasks: list[Task]) -> list[TaskResponse]:
    blocked_by = TaskService().blocked_by(session, tasks)
    return [_serialize_task(task, blocked_by.get(str(task.id), [])) for task in tasks]


def serialize_task(session: Session, task: Task) -> TaskResponse:
    return serialize_tasks(session, [task])[0]


def _serialize_task(task: Task, blocked_by: list[str]) -> TaskResponse:
    return TaskResponse(
        id=task.id,
        experiment_id=task.experiment_id,
        title=task.title,
        description=task.description or "",
        week_id=task.week_id,
        status=TaskStatus(task.status),
        importance=task.importance,
        completed=task.completed,
        tags=list(task.tags or []),
        dependencies=list(task.dependencies or []),
        recurrence_group_id=task.recurrence_group_id,
        plan_task_id=task.plan_task_id,
        blocked=bool(blocked_by),
        blocked_by=blocked_by,
        created_at=task.created_at,
        updated_at=task.updated_at,
    )


def _serialize_plan_item(item: dict[str, Any]) -> PlanTaskItemResponse:
    return PlanTaskItemResponse(
        id=str(item.get("id", "")),
        title=str(item.get("title", "")),
        description=item.get("description") or "",
        week_offset=item.get("week_offset", 0),
        importance=item.get("importance", 3),
        status=item.get("status") or TaskStatus.default.value,
        recurrence=item.get("recurrence"),
        dependencies=item.get("dependencies") or [],
    )
