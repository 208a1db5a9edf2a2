from __future__ import annotations

import logging
import uuid
from datetime import UTC, date, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from labpulse.db.models import Experiment, ExperimentStatus, Task
from labpulse.planner.errors import PlannerError
from labpulse.planner.expansion import expand_plan
from labpulse.planner.schema import PlanTaskItem, TaskRecord
from labpulse.planner.timeline import shift_experiment_timeline
from labpulse.planner.weeks import normalize_to_sunday, weeks_spanned
from labpulse.services.errors import ApiError, from_planner_error
from labpulse.services.records import (
    apply_task_record,
    experiment_to_record,
    plan_items_as_json,
    task_to_record,
)

logger = logging.getLogger(__name__)

DEFAULT_EXPECTED_WEEKS = 4
_EDITABLE_FIELDS = {"name", "description", "start_date", "end_date", "proposal_text"}


class ExperimentService:
    def create_experiment(
        self,
        session: Session,
        *,
        name: str,
        description: str = "",
        start_date: Any,
        end_date: Any = None,
        proposal_text: str | None = None,
        plan_entries: list[PlanTaskItem] | None = None,
    ) -> Experiment:
        experiment_id = uuid.uuid4()
        plan_entries = plan_entries or []

        try:
            start_week = normalize_to_sunday(start_date)
            end_week = normalize_to_sunday(end_date) if end_date else None
            records = expand_plan(
                plan_entries, start_week, experiment_id=str(experiment_id)
            )
            expected_weeks = self._expected_weeks(start_week, end_week, records)
        except PlannerError as exc:
            raise from_planner_error(exc) from exc

        try:
            experiment = Experiment(
                id=experiment_id,
                name=name,
                description=description,
                start_date=date.fromisoformat(start_week),
                end_date=date.fromisoformat(end_week) if end_week else None,
                expected_weeks=expected_weeks,
                status=ExperimentStatus.active.value,
                proposal_text=proposal_text,
                original_plan=plan_items_as_json(plan_entries),
            )
            session.add(experiment)
            session.flush()

            for record in records:
                task = Task(id=UUID(record["id"]), experiment_id=experiment.id)
                apply_task_record(task, record)
                session.add(task)

            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise ApiError(
                status_code=500,
                code="PERSISTENCE_ERROR",
                message="Could not persist experiment",
            ) from exc

        session.refresh(experiment)
        logger.info(
            "experiment_created",
            extra={
                "experiment_id": str(experiment.id),
                "plan_entries": len(plan_entries),
                "tasks_created": len(records),
            },
        )
        return experiment

    def list_experiments(
        self, session: Session, *, status: ExperimentStatus | None = None
    ) -> list[Experiment]:
        stmt = select(Experiment)
        if status is not None:
            stmt = stmt.where(Experiment.status == status.value)
        stmt = stmt.order_by(Experiment.start_date.asc(), Experiment.name.asc())
        return list(session.scalars(stmt).all())

    def get_experiment(self, session: Session, experiment_id: UUID) -> Experiment:
        experiment = session.get(Experiment, experiment_id)
        if experiment is None:
            raise ApiError(
                status_code=404,
                code="EXPERIMENT_NOT_FOUND",
                message=f"Experiment '{experiment_id}' not found",
            )
        return experiment

    def update_experiment(
        self, session: Session, *, experiment_id: UUID, changes: dict[str, Any]
    ) -> Experiment:
        experiment = self.get_experiment(session, experiment_id)

        unknown = set(changes) - _EDITABLE_FIELDS
        if unknown:
            raise ApiError(
                status_code=400,
                code="PLANNER_INPUT_INVALID",
                message=f"Unsupported experiment fields: {sorted(unknown)}",
            )

        try:
            if "start_date" in changes:
                if changes["start_date"] is None:
                    raise ApiError(
                        status_code=400,
                        code="INVALID_DATE",
                        message="start_date cannot be cleared",
                    )
                experiment.start_date = date.fromisoformat(
                    normalize_to_sunday(changes["start_date"])
                )
            if "end_date" in changes:
                experiment.end_date = (
                    date.fromisoformat(normalize_to_sunday(changes["end_date"]))
                    if changes["end_date"]
                    else None
                )
        except PlannerError as exc:
            raise from_planner_error(exc) from exc

        for field in ("name", "description", "proposal_text"):
            if field in changes and changes[field] is not None:
                setattr(experiment, field, changes[field])

        experiment.updated_at = datetime.now(UTC)
        return self._commit(session, experiment, "Could not update experiment")

    def toggle_archive(self, session: Session, *, experiment_id: UUID) -> Experiment:
        experiment = self.get_experiment(session, experiment_id)
        experiment.status = (
            ExperimentStatus.archived.value
            if experiment.status == ExperimentStatus.active.value
            else ExperimentStatus.active.value
        )
        experiment.updated_at = datetime.now(UTC)
        return self._commit(session, experiment, "Could not archive experiment")

    def restore(self, session: Session, *, experiment_id: UUID) -> Experiment:
        experiment = self.get_experiment(session, experiment_id)
        experiment.status = ExperimentStatus.active.value
        experiment.updated_at = datetime.now(UTC)
        return self._commit(session, experiment, "Could not restore experiment")

    def delete_experiment(self, session: Session, *, experiment_id: UUID) -> None:
        experiment = self.get_experiment(session, experiment_id)
        try:
            session.delete(experiment)
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise ApiError(
                status_code=500,
                code="PERSISTENCE_ERROR",
                message="Could not delete experiment",
            ) from exc
        logger.info("experiment_deleted", extra={"experiment_id": str(experiment_id)})

    def reset_tasks(self, session: Session, *, experiment_id: UUID) -> Experiment:
        experiment = self.get_experiment(session, experiment_id)
        try:
            experiment.tasks.clear()
            experiment.updated_at = datetime.now(UTC)
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise ApiError(
                status_code=500,
                code="PERSISTENCE_ERROR",
                message="Could not reset experiment tasks",
            ) from exc
        session.refresh(experiment)
        return experiment

    def shift_timeline(
        self, session: Session, *, experiment_id: UUID, weeks_delta: int
    ) -> Experiment:
        experiment = self.get_experiment(session, experiment_id)
        tasks = list(experiment.tasks)
        records = [task_to_record(task) for task in tasks]

        try:
            shifted_experiment, shifted_records = shift_experiment_timeline(
                experiment_to_record(experiment), records, weeks_delta
            )
        except PlannerError as exc:
            raise from_planner_error(exc) from exc

        now = datetime.now(UTC)
        shifted_by_id = {record["id"]: record for record in shifted_records}
        moved = 0
        try:
            for task in tasks:
                record = shifted_by_id[str(task.id)]
                if record["week_id"] != task.week_id.isoformat():
                    apply_task_record(task, record)
                    task.updated_at = now
                    moved += 1
            end_date = shifted_experiment.get("end_date")
            experiment.end_date = date.fromisoformat(end_date) if end_date else None
            experiment.updated_at = now
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise ApiError(
                status_code=500,
                code="PERSISTENCE_ERROR",
                message="Could not persist shifted timeline",
            ) from exc

        session.refresh(experiment)
        logger.info(
            "experiment_timeline_shifted",
            extra={
                "experiment_id": str(experiment.id),
                "weeks_delta": weeks_delta,
                "tasks_moved": moved,
            },
        )
        return experiment

    def _expected_weeks(
        self, start_week: str, end_week: str | None, records: list[TaskRecord]
    ) -> int:
        duration = (
            weeks_spanned(start_week, end_week) if end_week else DEFAULT_EXPECTED_WEEKS
        )
        latest_week = max((record["week_id"] for record in records), default=None)
        if latest_week is not None:
            duration = max(duration, weeks_spanned(start_week, latest_week))
        return duration

    def _commit(self, session: Session, experiment: Experiment, message: str) -> Experiment:
        try:
            session.add(experiment)
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise ApiError(
                status_code=500, code="PERSISTENCE_ERROR", message=message
            ) from exc
        session.refresh(experiment)
        return experiment
