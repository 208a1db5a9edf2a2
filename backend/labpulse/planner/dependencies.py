from __future__ import annotations

from collections.abc import Iterable, Iterator

from labpulse.planner.errors import PlannerCycleError, PlannerDependencyError
from labpulse.planner.schema import TaskRecord


def would_create_cycle(
    tasks: Iterable[TaskRecord],
    task_id: str,
    candidate_dependency_id: str,
) -> bool:
    """Return True if adding ``task_id -> candidate_dependency_id`` closes a cycle."""
    if task_id == candidate_dependency_id:
        return True

    adjacency: dict[str, list[str]] = {
        task["id"]: list(task.get("dependencies") or []) for task in tasks
    }
    adjacency[task_id] = [*adjacency.get(task_id, []), candidate_dependency_id]

    visited: set[str] = {task_id}
    on_path: set[str] = {task_id}
    stack: list[tuple[str, Iterator[str]]] = [(task_id, iter(adjacency[task_id]))]

    while stack:
        node, neighbours = stack[-1]
        for nxt in neighbours:
            if nxt in on_path:
                return True
            if nxt not in visited:
                visited.add(nxt)
                on_path.add(nxt)
                stack.append((nxt, iter(adjacency.get(nxt, []))))
                break
        else:
            stack.pop()
            on_path.discard(node)

    return False


def blocking_dependencies(task: TaskRecord, all_tasks: Iterable[TaskRecord]) -> list[str]:
    dependencies = task.get("dependencies") or []
    if not dependencies:
        return []

    completed_by_id = {item["id"]: bool(item.get("completed")) for item in all_tasks}
    # Ids that no longer resolve are treated as satisfied.
    return [
        dep_id
        for dep_id in dependencies
        if dep_id in completed_by_id and not completed_by_id[dep_id]
    ]


def is_blocked(task: TaskRecord, all_tasks: Iterable[TaskRecord]) -> bool:
    return bool(blocking_dependencies(task, all_tasks))


def add_dependency(
    tasks: list[TaskRecord],
    task_id: str,
    dependency_id: str,
) -> list[TaskRecord]:
    by_id = _index(tasks)
    task = _require(by_id, task_id)
    if task_id == dependency_id:
        raise PlannerCycleError("a task cannot depend on itself")
    dependency = _require(by_id, dependency_id)
    _assert_same_experiment(task, dependency)

    current = list(task.get("dependencies") or [])
    if dependency_id in current:
        return list(tasks)
    if would_create_cycle(tasks, task_id, dependency_id):
        raise PlannerCycleError(
            f"dependency '{task_id}' -> '{dependency_id}' would create a cycle"
        )

    return _replace(tasks, task_id, dependencies=[*current, dependency_id])


def set_dependencies(
    tasks: list[TaskRecord],
    task_id: str,
    dependency_ids: Iterable[str],
) -> list[TaskRecord]:
    _require(_index(tasks), task_id)
    updated = _replace(tasks, task_id, dependencies=[])
    for dependency_id in dependency_ids:
        updated = add_dependency(updated, task_id, dependency_id)
    return updated


def remove_dependency(
    tasks: list[TaskRecord],
    task_id: str,
    dependency_id: str,
) -> list[TaskRecord]:
    task = _require(_index(tasks), task_id)
    remaining = [
        dep_id for dep_id in task.get("dependencies") or [] if dep_id != dependency_id
    ]
    return _replace(tasks, task_id, dependencies=remaining)


def delete_task(tasks: list[TaskRecord], task_id: str) -> list[TaskRecord]:
    _require(_index(tasks), task_id)

    result: list[TaskRecord] = []
    for task in tasks:
        if task["id"] == task_id:
            continue
        dependencies = task.get("dependencies") or []
        if task_id in dependencies:
            task = {
                **task,
                "dependencies": [dep_id for dep_id in dependencies if dep_id != task_id],
            }
        result.append(task)
    return result


def _index(tasks: Iterable[TaskRecord]) -> dict[str, TaskRecord]:
    return {task["id"]: task for task in tasks}


def _require(by_id: dict[str, TaskRecord], task_id: str) -> TaskRecord:
    task = by_id.get(task_id)
    if task is None:
        raise PlannerDependencyError(f"dependency references unknown task '{task_id}'")
    return task


def _assert_same_experiment(task: TaskRecord, dependency: TaskRecord) -> None:
    if task["experiment_id"] != dependency["experiment_id"]:
        raise PlannerDependencyError(
            "dependencies must reference tasks within the same experiment"
        )


def _replace(tasks: list[TaskRecord], task_id: str, **changes) -> list[TaskRecord]:
    return [
        {**task, **changes} if task["id"] == task_id else task for task in tasks
    ]
