from __future__ import annotations

from datetime import date, datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from labpulse.db.models import ExperimentStatus, TaskStatus


class RecurrenceIn(BaseModel):
    interval_weeks: int
    duration_weeks: int


class PlanTaskItemIn(BaseModel):
    id: str | None = Field(default=None, max_length=64)
    title: str
    description: str = ""
    week_offset: int = 0
    importance: int = Field(default=3, ge=1, le=5)
    status: TaskStatus = TaskStatus.default
    recurrence: RecurrenceIn | None = None
    dependencies: list[str] = Field(default_factory=list)


class PlanTaskItemResponse(BaseModel):
    id: str
    title: str
    description: str
    week_offset: int
    importance: int
    status: str
    recurrence: RecurrenceIn | None = None
    dependencies: list[str]


class ExperimentCreateRequest(BaseModel):
    name: str = Field(min_length=1)
    description: str = ""
    start_date: date
    end_date: date | None = None
    proposal_text: str | None = None
    plan: list[PlanTaskItemIn] = Field(default_factory=list)


class ExperimentPatchRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1)
    description: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    proposal_text: str | None = None


class ExperimentShiftRequest(BaseModel):
    weeks: int


class ExperimentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: str
    start_date: date
    end_date: date | None
    expected_weeks: int
    status: ExperimentStatus
    proposal_text: str | None
    original_plan: list[PlanTaskItemResponse] | None = None
    task_count: int
    created_at: datetime
    updated_at: datetime


class TaskCreateRequest(BaseModel):
    title: str
    description: str = ""
    week_id: date | None = None
    status: TaskStatus = TaskStatus.default
    importance: int | None = Field(default=None, ge=1, le=5)
    completed: bool = False
    tags: list[str] = Field(default_factory=list)
    dependencies: list[str] = Field(default_factory=list)


class TaskPatchRequest(BaseModel):
    title: str | None = None
    description: str | None = None
    week_id: date | None = None
    status: TaskStatus | None = None
    importance: int | None = Field(default=None, ge=1, le=5)
    completed: bool | None = None
    tags: list[str] | None = None
    dependencies: list[str] | None = None


class DependencyCreateRequest(BaseModel):
    dependency_id: str


class TaskResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    experiment_id: UUID
    title: str
    description: str
    week_id: date
    status: TaskStatus
    importance: int
    completed: bool
    tags: list[str]
    dependencies: list[str]
    recurrence_group_id: str | None
    plan_task_id: str | None
    blocked: bool
    blocked_by: list[str]
    created_at: datetime
    updated_at: datetime


class PlanDraftNormalizeResponse(BaseModel):
    plan: list[PlanTaskItemResponse]


class ImportRequest(BaseModel):
    mode: Literal["merge", "replace"] = "merge"
    data: Any


class ImportResponse(BaseModel):
    mode: Literal["merge", "replace"]
    experiments: int
    tasks: int
