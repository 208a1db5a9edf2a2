from __future__ import annotations

from labpulse.planner.errors import PlannerInputError
from labpulse.planner.schema import ExperimentRecord, TaskRecord
from labpulse.planner.weeks import date_from_offset


def shift_timeline(
    tasks: list[TaskRecord],
    experiment_id: str,
    weeks_delta: int,
) -> list[TaskRecord]:
    _check_delta(weeks_delta)
    return [
        {**task, "week_id": date_from_offset(task["week_id"], weeks_delta)}
        if task["experiment_id"] == experiment_id and not task.get("completed")
        else task
        for task in tasks
    ]


def shift_end_date(experiment: ExperimentRecord, weeks_delta: int) -> ExperimentRecord:
    _check_delta(weeks_delta)
    end_date = experiment.get("end_date")
    if not end_date:
        return {**experiment, "end_date": None}
    return {**experiment, "end_date": date_from_offset(end_date, weeks_delta)}


def shift_experiment_timeline(
    experiment: ExperimentRecord,
    tasks: list[TaskRecord],
    weeks_delta: int,
) -> tuple[ExperimentRecord, list[TaskRecord]]:
    shifted_tasks = shift_timeline(tasks, experiment["id"], weeks_delta)
    shifted_experiment = shift_end_date(experiment, weeks_delta)
    return shifted_experiment, shifted_tasks


def _check_delta(weeks_delta: int) -> None:
    if isinstance(weeks_delta, bool) or not isinstance(weeks_delta, int):
        raise PlannerInputError("weeks_delta must be int")
