from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import Any, Literal

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from labpulse.db.models import Experiment, Task
from labpulse.domain.snapshot_validator import (
    SCHEMA_VERSION,
    BoardSnapshot,
    SnapshotValidationError,
    validate_snapshot,
)
from labpulse.services.errors import ApiError
from labpulse.services.records import (
    apply_task_record,
    experiment_to_record,
    task_to_record,
)

logger = logging.getLogger(__name__)

ImportMode = Literal["merge", "replace"]


class DataService:
    def export_snapshot(self, session: Session) -> dict[str, Any]:
        experiments = session.scalars(
            select(Experiment).order_by(Experiment.start_date.asc())
        ).all()
        tasks = session.scalars(
            select(Task).order_by(Task.week_id.asc(), Task.importance.desc())
        ).all()
        return {
            "experiments": [_experiment_to_json(item) for item in experiments],
            "tasks": [_task_to_json(item) for item in tasks],
            "schemaVersion": SCHEMA_VERSION,
            "hiddenWeeks": [],
        }

    def import_snapshot(
        self,
        session: Session,
        *,
        payload: Any,
        mode: ImportMode,
    ) -> dict[str, int]:
        try:
            snapshot = validate_snapshot(payload)
        except SnapshotValidationError as exc:
            raise ApiError(
                status_code=400, code="IMPORT_INVALID", message=str(exc)
            ) from exc

        # Stored ids are UUIDs; exported boards may carry arbitrary strings.
        if mode == "merge":
            experiment_ids = {item["id"]: uuid.uuid4() for item in snapshot.experiments}
            task_ids = {item["id"]: uuid.uuid4() for item in snapshot.tasks}
            keep_dependencies = False
        else:
            experiment_ids = {item["id"]: _as_uuid(item["id"]) for item in snapshot.experiments}
            task_ids = {item["id"]: _as_uuid(item["id"]) for item in snapshot.tasks}
            keep_dependencies = True

        try:
            if mode == "replace":
                session.execute(delete(Task))
                session.execute(delete(Experiment))
            self._insert(session, snapshot, experiment_ids, task_ids, keep_dependencies)
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise ApiError(
                status_code=500,
                code="PERSISTENCE_ERROR",
                message="Could not import board snapshot",
            ) from exc

        summary = {
            "experiments": len(snapshot.experiments),
            "tasks": len(snapshot.tasks),
        }
        logger.info("snapshot_imported", extra={"mode": mode, **summary})
        return summary

    def _insert(
        self,
        session: Session,
        snapshot: BoardSnapshot,
        experiment_ids: dict[str, uuid.UUID],
        task_ids: dict[str, uuid.UUID],
        keep_dependencies: bool,
    ) -> None:
        for record in snapshot.experiments:
            session.add(
                Experiment(
                    id=experiment_ids[record["id"]],
                    name=record["name"],
                    description=record["description"],
                    start_date=date.fromisoformat(record["start_date"]),
                    end_date=(
                        date.fromisoformat(record["end_date"])
                        if record.get("end_date")
                        else None
                    ),
                    expected_weeks=record["expected_weeks"],
                    status=record["status"],
                    proposal_text=record.get("proposal_text"),
                    original_plan=record.get("original_plan"),
                )
            )
        session.flush()

        for record in snapshot.tasks:
            dependencies = (
                [str(task_ids[dep_id]) for dep_id in record["dependencies"]]
                if keep_dependencies
                else []
            )
            task = Task(
                id=task_ids[record["id"]],
                experiment_id=experiment_ids[record["experiment_id"]],
            )
            apply_task_record(task, {**record, "dependencies": dependencies})
            session.add(task)


def _as_uuid(value: str) -> uuid.UUID:
    try:
        return uuid.UUID(value)
    except ValueError:
        return uuid.uuid5(uuid.NAMESPACE_URL, f"labpulse:{value}")


def _experiment_to_json(experiment: Experiment) -> dict[str, Any]:
    record = experiment_to_record(experiment)
    return {
        "id": record["id"],
        "name": record["name"],
        "description": record["description"],
        "startDate": record["start_date"],
        "endDate": record.get("end_date"),
        "expectedWeeks": record["expected_weeks"],
        "status": record["status"],
        "proposalText": record.get("proposal_text") or "",
        "originalPlan": (
            [_plan_item_to_json(item) for item in record["original_plan"]]
            if record.get("original_plan")
            else None
        ),
    }


def _plan_item_to_json(item: dict[str, Any]) -> dict[str, Any]:
    recurrence = item.get("recurrence")
    return {
        "id": item.get("id"),
        "title": item.get("title"),
        "description": item.get("description", ""),
        "weekOffset": item.get("week_offset", 0),
        "importance": item.get("importance"),
        "status": item.get("status"),
        "dependencies": item.get("dependencies", []),
        "recurrence": (
            {
                "type": "interval",
                "intervalWeeks": recurrence["interval_weeks"],
                "durationWeeks": recurrence["duration_weeks"],
            }
            if isinstance(recurrence, dict)
            else None
        ),
    }


def _task_to_json(task: Task) -> dict[str, Any]:
    record = task_to_record(task)
    return {
        "id": record["id"],
        "experimentId": record["experiment_id"],
        "title": record["title"],
        "description": record["description"],
        "weekId": record["week_id"],
        "status": record["status"],
        "importance": record["importance"],
        "completed": record["completed"],
        "tags": record["tags"],
        "dependencies": record["dependencies"],
        "recurrenceGroupId": record.get("recurrence_group_id"),
        "planTaskId": record.get("plan_task_id"),
    }
