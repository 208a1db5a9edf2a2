from __future__ import annotations


class PlannerError(ValueError):
    """Base class for planner failures."""


class PlannerInputError(PlannerError):
    """Raised for invalid task/plan payloads."""


class InvalidDateError(PlannerInputError):
    """Raised when a date cannot be parsed as an ISO calendar date."""


class InvalidRecurrenceError(PlannerInputError):
    """Raised when a recurrence descriptor would not terminate."""


class PlannerDependencyError(PlannerError):
    """Raised when dependency data is inconsistent."""


class PlannerCycleError(PlannerError):
    """Raised when a dependency edge would close a cycle."""
