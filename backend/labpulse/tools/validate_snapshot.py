from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from labpulse.domain.snapshot_validator import SnapshotValidationError, validate_snapshot


@dataclass(frozen=True)
class ValidationIssue:
    file: Path
    message: str


@dataclass(frozen=True)
class SnapshotReport:
    file: Path
    experiments: int
    tasks: int
    dropped_tasks: int
    dropped_dependencies: int


def _load_json(path: Path) -> Any:
    try:
        with path.open("r", encoding="utf-8") as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise SnapshotValidationError(f"Invalid JSON in {path}: {e}") from e


def validate_one_snapshot(path: Path) -> SnapshotReport:
    payload = _load_json(path)
    snapshot = validate_snapshot(payload)

    raw_tasks = payload.get("tasks", [])
    raw_edges = sum(
        len(task.get("dependencies") or [])
        for task in raw_tasks
        if isinstance(task, dict) and isinstance(task.get("dependencies"), list)
    )
    kept_edges = sum(len(task["dependencies"]) for task in snapshot.tasks)

    return SnapshotReport(
        file=path,
        experiments=len(snapshot.experiments),
        tasks=len(snapshot.tasks),
        dropped_tasks=len(raw_tasks) - len(snapshot.tasks),
        dropped_dependencies=max(raw_edges - kept_edges, 0),
    )


def validate_snapshots(paths: list[Path]) -> tuple[list[SnapshotReport], list[ValidationIssue]]:
    reports: list[SnapshotReport] = []
    issues: list[ValidationIssue] = []
    for path in paths:
        try:
            reports.append(validate_one_snapshot(path))
        except (OSError, SnapshotValidationError) as e:
            issues.append(ValidationIssue(file=path, message=str(e)))
    return reports, issues


def main() -> int:
    import argparse

    parser = argparse.ArgumentParser(
        description="Validate exported LabPulse board backups before import."
    )
    parser.add_argument("files", nargs="+", type=str, help="Backup JSON files")
    args = parser.parse_args()

    reports, issues = validate_snapshots([Path(item).resolve() for item in args.files])
    for report in reports:
        print(
            f"OK: {report.file} ({report.experiments} experiments, {report.tasks} tasks; "
            f"dropped {report.dropped_tasks} tasks, {report.dropped_dependencies} dependencies)"
        )
    if not issues:
        return 0

    print(f"\nFAILED: {len(issues)} backup file(s) invalid\n")
    for issue in issues:
        print(f"- {issue.file}: {issue.message}")
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
