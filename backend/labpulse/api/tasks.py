from __future__ import annotations

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from labpulse.api.schemas import (
    DependencyCreateRequest,
    TaskPatchRequest,
    TaskResponse,
)
from labpulse.api.serializers import serialize_task, serialize_tasks
from labpulse.db.session import get_db_session
from labpulse.services.task_service import TaskService

router = APIRouter(tags=["tasks"])


@router.get("/weeks/{week}/tasks", response_model=list[TaskResponse])
def list_week_tasks(
    week: date,
    experiment_id: UUID | None = Query(None),
    session: Session = Depends(get_db_session),
) -> list[TaskResponse]:
    tasks = TaskService().list_week_tasks(
        session, week=week, experiment_id=experiment_id
    )
    return serialize_tasks(session, tasks)


@router.get("/tasks/{task_id}", response_model=TaskResponse)
def get_task(
    task_id: UUID,
    session: Session = Depends(get_db_session),
) -> TaskResponse:
    task = TaskService().get_task(session, task_id)
    return serialize_task(session, task)


@router.patch("/tasks/{task_id}", response_model=TaskResponse)
def patch_task(
    task_id: UUID,
    payload: TaskPatchRequest,
    session: Session = Depends(get_db_session),
) -> TaskResponse:
    task = TaskService().update_task(
        session,
        task_id=task_id,
        changes=payload.model_dump(exclude_unset=True),
    )
    return serialize_task(session, task)


@router.delete("/tasks/{task_id}", status_code=204)
def delete_task(
    task_id: UUID,
    session: Session = Depends(get_db_session),
) -> Response:
    TaskService().delete_task(session, task_id=task_id)
    return Response(status_code=204)


@router.post("/tasks/{task_id}/dependencies", response_model=TaskResponse)
def add_task_dependency(
    task_id: UUID,
    payload: DependencyCreateRequest,
    session: Session = Depends(get_db_session),
) -> TaskResponse:
    task = TaskService().add_dependency(
        session, task_id=task_id, dependency_id=payload.dependency_id
    )
    return serialize_task(session, task)


@router.delete("/tasks/{task_id}/dependencies/{dependency_id}", response_model=TaskResponse)
def remove_task_dependency(
    task_id: UUID,
    dependency_id: str,
    session: Session = Depends(get_db_session),
) -> TaskResponse:
    task = TaskService().remove_dependency(
        session, task_id=task_id, dependency_id=dependency_id
    )
    return serialize_task(session, task)
