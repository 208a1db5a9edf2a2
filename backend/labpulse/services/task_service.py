from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from datetime import UTC, date, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from labpulse.config import load_app_config
from labpulse.db.models import Experiment, ExperimentStatus, Task, TaskStatus
from labpulse.planner.dependencies import (
    add_dependency,
    blocking_dependencies,
    delete_task,
    remove_dependency,
    set_dependencies,
)
from labpulse.planner.errors import PlannerCycleError, PlannerError
from labpulse.planner.expansion import strip_occurrence_suffix
from labpulse.planner.schema import TaskRecord
from labpulse.planner.weeks import normalize_to_sunday
from labpulse.services.errors import ApiError, from_planner_error
from labpulse.services.records import apply_task_record, task_to_record

logger = logging.getLogger(__name__)

_EDITABLE_FIELDS = {
    "title",
    "description",
    "week_id",
    "status",
    "importance",
    "completed",
    "tags",
    "dependencies",
}


class TaskService:
    def list_experiment_tasks(self, session: Session, *, experiment_id: UUID) -> list[Task]:
        stmt = (
            select(Task)
            .where(Task.experiment_id == experiment_id)
            .order_by(Task.week_id.asc(), Task.importance.desc(), Task.title.asc())
        )
        return list(session.scalars(stmt).all())

    def list_week_tasks(
        self,
        session: Session,
        *,
        week: Any,
        experiment_id: UUID | None = None,
    ) -> list[Task]:
        try:
            week_id = date.fromisoformat(normalize_to_sunday(week))
        except PlannerError as exc:
            raise from_planner_error(exc) from exc

        stmt = (
            select(Task)
            .join(Experiment, Task.experiment_id == Experiment.id)
            .where(
                Task.week_id == week_id,
                Experiment.status == ExperimentStatus.active.value,
            )
        )
        if experiment_id is not None:
            stmt = stmt.where(Task.experiment_id == experiment_id)
        stmt = stmt.order_by(Task.importance.desc(), Task.title.asc())
        return list(session.scalars(stmt).all())

    def get_task(self, session: Session, task_id: UUID) -> Task:
        task = session.get(Task, task_id)
        if task is None:
            raise ApiError(
                status_code=404,
                code="TASK_NOT_FOUND",
                message=f"Task '{task_id}' not found",
            )
        return task

    def blocked_by(self, session: Session, tasks: Iterable[Task]) -> dict[str, list[str]]:
        tasks = list(tasks)
        experiment_ids = {task.experiment_id for task in tasks}
        if not experiment_ids:
            return {}

        scope = [
            task_to_record(item)
            for item in session.scalars(
                select(Task).where(Task.experiment_id.in_(experiment_ids))
            ).all()
        ]
        return {
            str(task.id): blocking_dependencies(task_to_record(task), scope)
            for task in tasks
        }

    def create_task(
        self,
        session: Session,
        *,
        experiment_id: UUID,
        title: str,
        description: str = "",
        week_id: Any = None,
        status: TaskStatus = TaskStatus.default,
        importance: int | None = None,
        completed: bool = False,
        tags: list[str] | None = None,
        dependencies: list[str] | None = None,
    ) -> Task:
        experiment = session.get(Experiment, experiment_id)
        if experiment is None:
            raise ApiError(
                status_code=404,
                code="EXPERIMENT_NOT_FOUND",
                message=f"Experiment '{experiment_id}' not found",
            )

        if importance is None:
            importance = load_app_config().default_task_importance

        task_id = str(uuid.uuid4())
        try:
            record: TaskRecord = {
                "id": task_id,
                "experiment_id": str(experiment.id),
                "title": title,
                "description": description,
                "week_id": normalize_to_sunday(week_id or experiment.start_date),
                "status": TaskStatus(status).value,
                "importance": importance,
                "completed": completed,
                "tags": list(tags or []),
                "dependencies": [],
                "recurrence_group_id": None,
                "plan_task_id": None,
            }
            scope = [*self._experiment_records(experiment), record]
            if dependencies:
                scope = self._guarded(
                    set_dependencies, scope, task_id, dependencies
                )
        except PlannerError as exc:
            raise from_planner_error(exc) from exc

        task = Task(id=UUID(task_id), experiment_id=experiment.id)
        apply_task_record(task, _find(scope, task_id))
        return self._commit(session, task, "Could not persist task")

    def update_task(
        self, session: Session, *, task_id: UUID, changes: dict[str, Any]
    ) -> Task:
        task = self.get_task(session, task_id)
        experiment = task.experiment

        unknown = set(changes) - _EDITABLE_FIELDS
        if unknown:
            raise ApiError(
                status_code=400,
                code="PLANNER_INPUT_INVALID",
                message=f"Unsupported task fields: {sorted(unknown)}",
            )

        key = str(task.id)
        scope = self._experiment_records(experiment)
        try:
            record = dict(_find(scope, key))
            if (
                changes.get("completed") is True
                and not record["completed"]
                and changes.get("status") is None
            ):
                record["status"] = TaskStatus.completed.value
            for field, value in changes.items():
                if field == "dependencies" or value is None:
                    continue
                if field == "week_id":
                    value = normalize_to_sunday(value)
                elif field == "status":
                    value = TaskStatus(value).value
                record[field] = value
            scope = [record if item["id"] == key else item for item in scope]

            if changes.get("dependencies") is not None:
                scope = self._guarded(set_dependencies, scope, key, changes["dependencies"])
        except PlannerError as exc:
            raise from_planner_error(exc) from exc

        updated = _find(scope, key)
        apply_task_record(task, updated)
        task.updated_at = datetime.now(UTC)
        self._sync_master_plan(experiment, updated)
        return self._commit(session, task, "Could not update task")

    def add_dependency(
        self, session: Session, *, task_id: UUID, dependency_id: str
    ) -> Task:
        task = self.get_task(session, task_id)
        key = str(task.id)
        try:
            scope = self._guarded(
                add_dependency, self._experiment_records(task.experiment), key, dependency_id
            )
        except PlannerError as exc:
            raise from_planner_error(exc) from exc

        apply_task_record(task, _find(scope, key))
        task.updated_at = datetime.now(UTC)
        return self._commit(session, task, "Could not persist dependency")

    def remove_dependency(
        self, session: Session, *, task_id: UUID, dependency_id: str
    ) -> Task:
        task = self.get_task(session, task_id)
        key = str(task.id)
        try:
            scope = remove_dependency(
                self._experiment_records(task.experiment), key, dependency_id
            )
        except PlannerError as exc:
            raise from_planner_error(exc) from exc

        apply_task_record(task, _find(scope, key))
        task.updated_at = datetime.now(UTC)
        return self._commit(session, task, "Could not persist dependency")

    def delete_task(self, session: Session, *, task_id: UUID) -> None:
        task = self.get_task(session, task_id)
        experiment = task.experiment
        key = str(task.id)

        try:
            remaining = delete_task(self._experiment_records(experiment), key)
        except PlannerError as exc:
            raise from_planner_error(exc) from exc

        remaining_by_id = {record["id"]: record for record in remaining}
        now = datetime.now(UTC)
        cleaned = 0
        try:
            for other in list(experiment.tasks):
                if other.id == task.id:
                    continue
                record = remaining_by_id[str(other.id)]
                if record["dependencies"] != list(other.dependencies or []):
                    other.dependencies = list(record["dependencies"])
                    other.updated_at = now
                    cleaned += 1
            session.delete(task)
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise ApiError(
                status_code=500,
                code="PERSISTENCE_ERROR",
                message="Could not delete task",
            ) from exc

        logger.info(
            "task_deleted",
            extra={"task_id": key, "dependents_cleaned": cleaned},
        )

    def _guarded(self, operation, scope: list[TaskRecord], task_id: str, *args):
        try:
            return operation(scope, task_id, *args)
        except PlannerCycleError:
            logger.warning(
                "dependency_rejected",
                extra={"task_id": task_id, "candidate": repr(args[0])},
            )
            raise

    def _experiment_records(self, experiment: Experiment) -> list[TaskRecord]:
        return [task_to_record(item) for item in experiment.tasks]

    def _sync_master_plan(self, experiment: Experiment, record: TaskRecord) -> None:
        plan_task_id = record.get("plan_task_id")
        if not plan_task_id or not experiment.original_plan:
            return

        title = record["title"]
        if record.get("recurrence_group_id"):
            title = strip_occurrence_suffix(title)

        updated_plan: list[dict[str, Any]] = []
        changed = False
        for item in experiment.original_plan:
            if isinstance(item, dict) and item.get("id") == plan_task_id:
                item = {
                    **item,
                    "title": title,
                    "description": record["description"],
                    "importance": record["importance"],
                }
                changed = True
            updated_plan.append(item)

        if changed:
            experiment.original_plan = updated_plan
            experiment.updated_at = datetime.now(UTC)

    def _commit(self, session: Session, task: Task, message: str) -> Task:
        try:
            session.add(task)
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise ApiError(
                status_code=500, code="PERSISTENCE_ERROR", message=message
            ) from exc
        session.refresh(task)
        return task


def _find(scope: list[TaskRecord], task_id: str) -> TaskRecord:
    for record in scope:
        if record["id"] == task_id:
            return record
    raise KeyError(task_id)
