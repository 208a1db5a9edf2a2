from __future__ import annotations

from labpulse.planner.errors import (
    InvalidDateError,
    InvalidRecurrenceError,
    PlannerCycleError,
    PlannerDependencyError,
    PlannerError,
)


class ApiError(Exception):
    def __init__(self, *, status_code: int, code: str, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message


def from_planner_error(exc: PlannerError) -> ApiError:
    if isinstance(exc, PlannerCycleError):
        return ApiError(status_code=409, code="DEPENDENCY_CYCLE", message=str(exc))
    if isinstance(exc, PlannerDependencyError):
        return ApiError(status_code=400, code="DEPENDENCY_INVALID", message=str(exc))
    if isinstance(exc, InvalidDateError):
        return ApiError(status_code=400, code="INVALID_DATE", message=str(exc))
    if isinstance(exc, InvalidRecurrenceError):
        return ApiError(status_code=400, code="INVALID_RECURRENCE", message=str(exc))
    return ApiError(status_code=400, code="PLANNER_INPUT_INVALID", message=str(exc))
