from labpulse.planner.dependencies import (
    add_dependency,
    blocking_dependencies,
    delete_task,
    is_blocked,
    remove_dependency,
    set_dependencies,
    would_create_cycle,
)
from labpulse.planner.errors import (
    InvalidDateError,
    InvalidRecurrenceError,
    PlannerCycleError,
    PlannerDependencyError,
    PlannerError,
    PlannerInputError,
)
from labpulse.planner.expansion import expand_plan, strip_occurrence_suffix
from labpulse.planner.timeline import shift_experiment_timeline, shift_timeline
from labpulse.planner.weeks import (
    date_from_offset,
    normalize_to_sunday,
    week_offset_of,
)

__all__ = [
    "add_dependency",
    "blocking_dependencies",
    "date_from_offset",
    "delete_task",
    "expand_plan",
    "is_blocked",
    "normalize_to_sunday",
    "remove_dependency",
    "set_dependencies",
    "shift_experiment_timeline",
    "shift_timeline",
    "strip_occurrence_suffix",
    "week_offset_of",
    "would_create_cycle",
    "PlannerError",
    "PlannerInputError",
    "InvalidDateError",
    "InvalidRecurrenceError",
    "PlannerDependencyError",
    "PlannerCycleError",
]
