from __future__ import annotations

import uuid
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from labpulse.api.schemas import (
    ExperimentCreateRequest,
    ExperimentPatchRequest,
    ExperimentResponse,
    ExperimentShiftRequest,
    TaskCreateRequest,
    TaskResponse,
)
from labpulse.api.serializers import (
    serialize_experiment,
    serialize_task,
    serialize_tasks,
)
from labpulse.db.models import ExperimentStatus
from labpulse.db.session import get_db_session
from labpulse.services.experiment_service import ExperimentService
from labpulse.services.task_service import TaskService

router = APIRouter(tags=["experiments"])


@router.post("/experiments", response_model=ExperimentResponse, status_code=201)
def create_experiment(
    payload: ExperimentCreateRequest,
    session: Session = Depends(get_db_session),
) -> ExperimentResponse:
    plan_entries = [
        {**item, "id": item.get("id") or str(uuid.uuid4())}
        for item in (entry.model_dump(mode="json") for entry in payload.plan)
    ]

    experiment = ExperimentService().create_experiment(
        session,
        name=payload.name,
        description=payload.description,
        start_date=payload.start_date,
        end_date=payload.end_date,
        proposal_text=payload.proposal_text,
        plan_entries=plan_entries,
    )
    return serialize_experiment(experiment)


@router.get("/experiments", response_model=list[ExperimentResponse])
def list_experiments(
    status: ExperimentStatus | None = Query(None),
    session: Session = Depends(get_db_session),
) -> list[ExperimentResponse]:
    experiments = ExperimentService().list_experiments(session, status=status)
    return [serialize_experiment(item) for item in experiments]


@router.get("/experiments/{experiment_id}", response_model=ExperimentResponse)
def get_experiment(
    experiment_id: UUID,
    session: Session = Depends(get_db_session),
) -> ExperimentResponse:
    experiment = ExperimentService().get_experiment(session, experiment_id)
    return serialize_experiment(experiment)


@router.patch("/experiments/{experiment_id}", response_model=ExperimentResponse)
def patch_experiment(
    experiment_id: UUID,
    payload: ExperimentPatchRequest,
    session: Session = Depends(get_db_session),
) -> ExperimentResponse:
    experiment = ExperimentService().update_experiment(
        session,
        experiment_id=experiment_id,
        changes=payload.model_dump(exclude_unset=True),
    )
    return serialize_experiment(experiment)


@router.delete("/experiments/{experiment_id}", status_code=204)
def delete_experiment(
    experiment_id: UUID,
    session: Session = Depends(get_db_session),
) -> Response:
    ExperimentService().delete_experiment(session, experiment_id=experiment_id)
    return Response(status_code=204)


@router.post("/experiments/{experiment_id}/archive", response_model=ExperimentResponse)
def toggle_archive(
    experiment_id: UUID,
    session: Session = Depends(get_db_session),
) -> ExperimentResponse:
    experiment = ExperimentService().toggle_archive(session, experiment_id=experiment_id)
    return serialize_experiment(experiment)


@router.post("/experiments/{experiment_id}/restore", response_model=ExperimentResponse)
def restore_experiment(
    experiment_id: UUID,
    session: Session = Depends(get_db_session),
) -> ExperimentResponse:
    experiment = ExperimentService().restore(session, experiment_id=experiment_id)
    return serialize_experiment(experiment)


@router.post("/experiments/{experiment_id}/shift", response_model=ExperimentResponse)
def shift_experiment_timeline(
    experiment_id: UUID,
    payload: ExperimentShiftRequest,
    session: Session = Depends(get_db_session),
) -> ExperimentResponse:
    experiment = ExperimentService().shift_timeline(
        session, experiment_id=experiment_id, weeks_delta=payload.weeks
    )
    return serialize_experiment(experiment)


@router.post(
    "/experiments/{experiment_id}/reset-tasks", response_model=ExperimentResponse
)
def reset_experiment_tasks(
    experiment_id: UUID,
    session: Session = Depends(get_db_session),
) -> ExperimentResponse:
    experiment = ExperimentService().reset_tasks(session, experiment_id=experiment_id)
    return serialize_experiment(experiment)


@router.get("/experiments/{experiment_id}/tasks", response_model=list[TaskResponse])
def list_experiment_tasks(
    experiment_id: UUID,
    session: Session = Depends(get_db_session),
) -> list[TaskResponse]:
    ExperimentService().get_experiment(session, experiment_id)

    tasks = TaskService().list_experiment_tasks(session, experiment_id=experiment_id)
    return serialize_tasks(session, tasks)


@router.post(
    "/experiments/{experiment_id}/tasks", response_model=TaskResponse, status_code=201
)
def create_task(
    experiment_id: UUID,
    payload: TaskCreateRequest,
    session: Session = Depends(get_db_session),
) -> TaskResponse:
    task = TaskService().create_task(
        session,
        experiment_id=experiment_id,
        title=payload.title,
        description=payload.description,
        week_id=payload.week_id,
        status=payload.status,
        importance=payload.importance,
        completed=payload.completed,
        tags=payload.tags,
        dependencies=payload.dependencies,
    )
    return serialize_task(session, task)
