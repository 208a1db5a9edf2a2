from __future__ import annotations

import os
import uuid
from datetime import date, datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from labpulse.db.base import Base
from labpulse.planner.schema import DEFAULT_IMPORTANCE, ExperimentStatus, TaskStatus

__all__ = ["Experiment", "ExperimentStatus", "Task", "TaskStatus"]

JSON_TYPE = JSON().with_variant(JSONB(), "postgresql")
JSON_EMPTY_LIST_DEFAULT = (
    text("'[]'::jsonb")
    if os.getenv("DATABASE_URL", "").startswith("postgresql")
    else text("'[]'")
)


class Experiment(Base):
    __tablename__ = "experiments"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    expected_weeks: Mapped[int] = mapped_column(Integer, nullable=False, default=4)
    status: Mapped[str] = mapped_column(
        String(32), nullable=False, default=ExperimentStatus.active.value, index=True
    )
    proposal_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    original_plan: Mapped[list[dict[str, Any]] | None] = mapped_column(
        JSON_TYPE, nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    tasks: Mapped[list[Task]] = relationship(
        back_populates="experiment", cascade="all, delete-orphan"
    )


class Task(Base):
    __tablename__ = "tasks"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    experiment_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("experiments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    week_id: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    status: Mapped[str] = mapped_column(
        String(32), nullable=False, default=TaskStatus.default.value
    )
    importance: Mapped[int] = mapped_column(
        Integer, nullable=False, default=DEFAULT_IMPORTANCE
    )
    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    tags: Mapped[list[str]] = mapped_column(
        JSON_TYPE, nullable=False, server_default=JSON_EMPTY_LIST_DEFAULT
    )
    dependencies: Mapped[list[str]] = mapped_column(
        JSON_TYPE, nullable=False, server_default=JSON_EMPTY_LIST_DEFAULT
    )
    recurrence_group_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    plan_task_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    experiment: Mapped[Experiment] = relationship(back_populates="tasks")
