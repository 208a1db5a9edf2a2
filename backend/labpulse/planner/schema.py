from __future__ import annotations

from enum import Enum
from typing import NotRequired, TypedDict


class TaskStatus(str, Enum):
    default = "default"
    important = "important"
    warning = "warning"
    info = "info"
    completed = "completed"


class ExperimentStatus(str, Enum):
    active = "active"
    archived = "archived"


DEFAULT_IMPORTANCE = 3
MIN_IMPORTANCE = 1
MAX_IMPORTANCE = 5


class RecurrenceConfig(TypedDict):
    interval_weeks: int
    duration_weeks: int


class PlanTaskItem(TypedDict):
    id: str
    title: str
    description: str
    week_offset: int
    importance: int
    status: str
    dependencies: list[str]
    recurrence: NotRequired[RecurrenceConfig | None]


class TaskRecord(TypedDict):
    id: str
    experiment_id: str
    title: str
    description: str
    week_id: str
    status: str
    importance: int
    completed: bool
    tags: list[str]
    dependencies: list[str]
    recurrence_group_id: NotRequired[str | None]
    plan_task_id: NotRequired[str | None]


class ExperimentRecord(TypedDict):
    id: str
    name: str
    description: str
    start_date: str
    end_date: NotRequired[str | None]
    expected_weeks: int
    status: str
    proposal_text: NotRequired[str | None]
    original_plan: NotRequired[list[PlanTaskItem] | None]
